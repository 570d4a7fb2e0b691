from pydantic import BaseModel


class BadgeDefinition(BaseModel):
    name: str
    description: str
    icon: str
    category: str
    criteria: str
    required_points: int = 1


class Badge(BadgeDefinition):
    id: int

    model_config = {"from_attributes": True}
