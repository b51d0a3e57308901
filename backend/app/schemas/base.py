from pydantic import BaseModel
from pydantic.alias_generators import to_camel

class CamelModel(BaseModel):
    """
    프론트엔드와 주고받는 JSON 은 camelCase
    """
    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True
