"""Application configuration loaded from environment variables."""

from __future__ import annotations

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "block-sampler"
    debug: bool = False
    log_level: str = "INFO"

    # Sampling window
    target_event_kind: str = "CandidateIncluded"
    batch_limit: int = 12
    bucket_key_path: str = "data[0].descriptor.paraId"
    bucket_key_transform: str = "grouped_int"
    aux_field_paths: dict[str, str] = {"relay_parent": "data[0].descriptor.relayParent"}

    # Acceptance: ";"-separated threshold rules
    acceptance_rules: str = "2000>=7;2001<=4"

    # Deadline for a whole run; None or <= 0 waits forever
    run_timeout_seconds: Optional[float] = 300.0

    # Node RPC
    connect_timeout_seconds: float = 10.0
    subscribe_method: str = "system_subscribeEvents"
    unsubscribe_method: str = "system_unsubscribeEvents"

    # HTTP API
    history_size: int = 50

    model_config = {"env_prefix": "SAMPLER_"}


settings = Settings()
