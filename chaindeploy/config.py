from pathlib import Path
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=BASE_DIR / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="json",
        description="Log renderer: json, console, or auto (console when attached to a terminal)",
    )
    deployer_key_env: str = Field(
        default="DEPLOYER_PRIVATE_KEY",
        description="Environment variable the CLI reads the signing key from",
    )

    # RPC endpoints (override with ETHEREUM_RPC, SEPOLIA_RPC, ...)
    ethereum_rpc: str = Field(
        default="https://mainnet.infura.io/v3/",
        description="Ethereum mainnet JSON-RPC endpoint",
    )
    sepolia_rpc: str = Field(
        default="https://sepolia.infura.io/v3/",
        description="Ethereum Sepolia JSON-RPC endpoint",
    )
    arbitrum_rpc: str = Field(
        default="https://arb1.arbitrum.io/rpc",
        description="Arbitrum One JSON-RPC endpoint",
    )
    arbitrum_sepolia_rpc: str = Field(
        default="https://sepolia-rollup.arbitrum.io/rpc",
        description="Arbitrum Sepolia JSON-RPC endpoint",
    )
    polygon_rpc: str = Field(
        default="https://polygon-rpc.com",
        description="Polygon PoS JSON-RPC endpoint",
    )
    mumbai_rpc: str = Field(
        default="https://rpc-mumbai.maticvigil.com",
        description="Polygon Mumbai JSON-RPC endpoint",
    )
    optimism_rpc: str = Field(
        default="https://mainnet.optimism.io",
        description="Optimism JSON-RPC endpoint",
    )
    optimism_sepolia_rpc: str = Field(
        default="https://sepolia.optimism.io",
        description="Optimism Sepolia JSON-RPC endpoint",
    )

    # Network calls
    rpc_timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Timeout applied to every individual JSON-RPC call",
    )

    # Confirmation monitoring
    monitor_poll_interval_seconds: float = Field(
        default=5.0,
        gt=0,
        description="Delay between receipt polls",
    )
    monitor_timeout_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Deadline for start_monitoring sessions",
    )
    wait_timeout_seconds: float = Field(
        default=600.0,
        gt=0,
        description="Deadline for wait_for_confirmation",
    )
    confirmation_threshold: int = Field(
        default=2,
        ge=0,
        description="Blocks on top of the receipt block before a tx counts as settled",
    )
    deployment_confirmations: int = Field(
        default=1,
        ge=0,
        description="Confirmations a deployment waits for before checking contract code",
    )

    # Validation
    min_bytecode_bytes: int = Field(
        default=10,
        ge=1,
        description="Smallest accepted creation bytecode, in bytes",
    )

    def rpc_url_for(self, network_key: str) -> Optional[str]:
        return getattr(self, f"{network_key}_rpc", None)


# Global settings instance
settings = Settings()
