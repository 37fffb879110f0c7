from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import List, Literal, Optional, Union
from pydantic import BaseModel, Field
import yaml

from .concurrency import default_worker_count
from .models import FilterCriteria

DEFAULT_CONFIG_PATH = "config/foldermatch.yaml"

class ScannerConfig(BaseModel):
    max_workers: int = Field(default_factory=default_worker_count)
    enumeration_report_every: int = 100
    analysis_report_every: int = 25
    timeout_seconds: float = 30 * 60

class DedupeConfig(BaseModel):
    max_workers: Optional[int] = None
    hash_algorithm: Literal["sha256", "blake3"] = "sha256"
    hash_chunk_bytes: int = 1024 * 1024  # 1 MB streaming chunks
    io_bytes_per_sec: Optional[int] = None
    network_friendly: bool = False
    index_report_every: int = 100
    group_report_every: int = 50
    compare_report_every: int = 10

class AggregateConfig(BaseModel):
    report_every: int = 25

class FilterConfig(BaseModel):
    min_similarity_percent: float = 50.0
    min_size_bytes: int = 1024 * 1024
    min_date: Optional[datetime] = None
    max_date: Optional[datetime] = None

    def to_criteria(self) -> FilterCriteria:
        return FilterCriteria(
            min_similarity_percent=self.min_similarity_percent,
            min_size_bytes=self.min_size_bytes,
            min_date=self.min_date,
            max_date=self.max_date,
        )

class RecoveryConfig(BaseModel):
    locked_retry_delay: float = 2.0
    network_retry_delay: float = 5.0
    network_pause_delay: float = 30.0
    bandwidth_pause_delay: float = 10.0
    probe_timeout: float = 5.0
    memory_settle_seconds: float = 1.0

class ProjectConfig(BaseModel):
    path: str = "data/project.dfp"

class AnalysisConfig(BaseModel):
    roots: List[str] = Field(default_factory=list)
    scanner: ScannerConfig = ScannerConfig()
    dedupe: DedupeConfig = DedupeConfig()
    aggregate: AggregateConfig = AggregateConfig()
    filters: FilterConfig = FilterConfig()
    recovery: RecoveryConfig = RecoveryConfig()
    project: ProjectConfig = ProjectConfig()

def load_config(path: Optional[Union[str, Path]] = None) -> AnalysisConfig:
    if path is None:
        path = Path(DEFAULT_CONFIG_PATH)
        if not path.exists():
            return AnalysisConfig()
    data = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
    return AnalysisConfig(**data)
