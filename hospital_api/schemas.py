"""Shared Pydantic building blocks for request and response bodies.

Payloads use camelCase on the wire and snake_case in Python.
"""
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, PlainSerializer
from pydantic.alias_generators import to_camel


Money = Annotated[Decimal, PlainSerializer(lambda value: float(value), return_type=float, when_used='json')]


class CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class OtherService(CamelModel):
    description: str
    amount: Money
