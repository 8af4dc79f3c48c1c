# scraper/models.py
from pydantic import BaseModel, Field
from typing import Optional, Union

Number = Union[int, float]


class Item(BaseModel):
    id: str = Field(..., min_length=1, description="Listing token, unique per topic")
    link: str
    img_url: Optional[str] = None
    price: Optional[Number] = None
    year: Optional[Number] = None
    hand: Optional[str] = None
    km: Optional[Number] = None  # filled from the item page for new items
    merchant: bool = False
    agency_name: Optional[str] = None
    model: Optional[str] = None
    sub_model: Optional[str] = None
    city: Optional[str] = None
    area: Optional[str] = None
