from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

# These models only describe request bodies in the OpenAPI document. Bodies are
# forwarded to Pipedrive as raw bytes and are never validated against them.

DealStatus = Literal["open", "won", "lost", "deleted"]
VisibleTo = Literal["1", "3", "5", "7"]


class CreateDeal(BaseModel):
    title: str = Field(examples=["Test Deal"])
    value: str | None = Field(default=None, examples=["1000"])
    label: list[int] | None = Field(default=None, examples=[[1, 2, 3]])
    currency: str | None = Field(default=None, examples=["USD"])
    user_id: int | None = Field(default=None, examples=[123])
    person_id: int | None = Field(default=None, examples=[456])
    org_id: int | None = Field(default=None, examples=[789])
    pipeline_id: int | None = Field(default=None, examples=[10])
    stage_id: int | None = Field(default=None, examples=[20])
    status: DealStatus | None = Field(default=None, examples=["open"])
    origin_id: str | None = Field(default=None, examples=["integration_xyz"])
    channel: int | None = Field(default=None, examples=[1])
    channel_id: str | None = Field(default=None, examples=["ch_123"])
    add_time: str | None = Field(default=None, examples=["2023-08-21 12:34:56"])
    won_time: str | None = Field(default=None, examples=["2023-08-22 13:00:00"])
    lost_time: str | None = Field(default=None, examples=["2023-08-22 14:00:00"])
    close_time: str | None = Field(default=None, examples=["2023-08-23 15:00:00"])
    expected_close_date: str | None = Field(default=None, examples=["2023-08-30"])
    probability: float | None = Field(default=None, examples=[75.5])
    lost_reason: str | None = Field(default=None, examples=["Price too high"])
    visible_to: VisibleTo | None = Field(default=None, examples=["1"])


class UpdateDeal(BaseModel):
    title: str | None = Field(default=None, examples=["Updated Deal Title"])
    value: str | None = Field(default=None, examples=["1500"])
    label: list[int] | None = Field(default=None, examples=[[1, 2]])
    currency: str | None = Field(default=None, examples=["USD"])
    user_id: int | None = Field(default=None, examples=[123])
    person_id: int | None = Field(default=None, examples=[456])
    org_id: int | None = Field(default=None, examples=[789])
    pipeline_id: int | None = Field(default=None, examples=[10])
    stage_id: int | None = Field(default=None, examples=[20])
    status: DealStatus | None = Field(default=None, examples=["open"])
    channel: int | None = Field(default=None, examples=[1])
    channel_id: str | None = Field(default=None, examples=["ch_123"])
    won_time: str | None = Field(default=None, examples=["2023-08-22 13:00:00"])
    lost_time: str | None = Field(default=None, examples=["2023-08-22 14:00:00"])
    close_time: str | None = Field(default=None, examples=["2023-08-23 15:00:00"])
    expected_close_date: str | None = Field(default=None, examples=["2023-08-30"])
    probability: float | None = Field(default=None, examples=[75.5])
    lost_reason: str | None = Field(default=None, examples=["Price too high"])
    visible_to: VisibleTo | None = Field(default=None, examples=["1"])


class UpdateDealWithId(UpdateDeal):
    id: int = Field(examples=[42], description="Deal id; removed from the body before forwarding.")


def request_body_schema(model: type[BaseModel]) -> dict:
    """OpenAPI ``requestBody`` for a raw-bytes route documented by ``model``."""

    return {
        "requestBody": {
            "required": True,
            "content": {"application/json": {"schema": model.model_json_schema()}},
        }
    }
