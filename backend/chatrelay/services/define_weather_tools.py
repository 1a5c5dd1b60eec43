"""Weather Tool Schema — getWeather argument model (coordinates range-checked)."""

from pydantic import BaseModel, Field

from chatrelay.services.tool_definition import ToolDefinition


class GetWeatherArgs(BaseModel):
    latitude: float = Field(ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(ge=-180, le=180, description="Longitude in degrees")


GET_WEATHER = ToolDefinition(
    name="getWeather",
    description="Get the current weather at a location",
    args_model=GetWeatherArgs,
)
