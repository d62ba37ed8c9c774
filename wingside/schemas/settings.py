"""Pydantic schemas for site settings"""

from typing import Dict, Union

from pydantic import BaseModel


class SettingsUpdate(BaseModel):
    settings: Dict[str, Union[bool, int, float, str]]
