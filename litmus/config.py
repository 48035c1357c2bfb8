"""Configuration for running tests and rendering results."""

from typing import Literal

from pydantic import PositiveFloat

from litmus.models.base import Model

DEFAULT_ASYNC_TIMEOUT = 4.0


class LitmusConfig(Model):
    """Settings shared by every run created from one declaration."""

    async_timeout: PositiveFloat = DEFAULT_ASYNC_TIMEOUT
    colour: bool = True
    output_format: Literal["text", "html", "json"] = "text"
