"""Value types passed between the mint core components."""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class MintRequest(BaseModel):
    """A validated mint request. Validation itself lives in `validation`."""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    wallet_address: str
    telegram_user_id: int = Field(..., ge=0)
    color: str = Field(..., pattern=r"^#[0-9a-fA-F]{6}$")


class WalletStatus(BaseModel):
    model_config = ConfigDict(frozen=True)

    friendly_address: str
    non_bounceable_address: str
    balance_nano: int
    state: str


class PreconditionReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    friendly_address: str
    non_bounceable_address: str
    balance_nano: int
    required_nano: int
    state: str
    warnings: list[str] = Field(default_factory=list)

    @property
    def ready(self) -> bool:
        return not self.warnings


class DeployRun(BaseModel):
    """Parsed `MINT_RESULT=` payload plus the raw output it came from."""

    result: dict[str, Any]
    stdout: str = ""
    stderr: str = ""


class MintOutcome(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    item_index: int
    metadata_uri: str
    transaction: Optional[str] = None
    nft_address: Optional[str] = None
    color: str
    owner_address: str
    minted_at: str
    script_metadata_uri: Optional[Any] = None
    item_content: Optional[Any] = None

    def to_response(self) -> dict:
        return self.model_dump(by_alias=True)
