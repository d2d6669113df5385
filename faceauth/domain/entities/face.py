"""Core face domain entities."""
from pydantic import BaseModel, Field


class FaceRegion(BaseModel):
    """Face location in source-image pixel coordinates."""
    x: float = Field(..., description="Left coordinate of the face box")
    y: float = Field(..., description="Top coordinate of the face box")
    width: float = Field(..., description="Width of the face box", ge=0.0)
    height: float = Field(..., description="Height of the face box", ge=0.0)
    confidence: float = Field(..., description="Detector confidence", ge=0.0, le=1.0)

    def scaled(self, scale_x: float, scale_y: float) -> "FaceRegion":
        """Return the same region expressed in a rescaled image."""
        return FaceRegion(
            x=self.x * scale_x,
            y=self.y * scale_y,
            width=self.width * scale_x,
            height=self.height * scale_y,
            confidence=self.confidence,
        )
