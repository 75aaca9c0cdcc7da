# models.py
from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, List, Literal, Optional, Union

ContentType = Literal['movie', 'series']

class MetaPreview(BaseModel):
    id: str = Field(..., description="Add-on item id, e.g. uakino:movie:filmy%2F123-title.html")
    type: ContentType = Field(..., description="Content type")
    name: str = Field(..., description="Display name, with season info when the listing shows it")
    poster: Optional[str] = Field(default=None, description="Poster URL")
    description: str = Field(default="", description="Short description from the listing")
    releaseInfo: str = Field(default="", description="Release year")
    imdbRating: Optional[str] = Field(default=None, description="IMDb rating")

    class Config:
        from_attributes = True

class Video(BaseModel):
    id: str = Field(..., description="Episode id: <prefix>:series:<season page path>:<season>:<episode>")
    title: str = Field(..., description="Episode title as listed in the playlist")
    season: int = Field(..., description="Season number")
    episode: int = Field(..., description="Episode number")
    released: datetime = Field(..., description="Time the episode was scraped")

    class Config:
        from_attributes = True

class MetaDetail(BaseModel):
    id: str = Field(..., description="Add-on item id")
    type: ContentType = Field(..., description="Content type")
    name: str = Field(..., description="Title without season suffix")
    poster: str = Field(default="", description="Poster URL")
    background: Optional[str] = Field(default=None, description="Background image URL")
    description: str = Field(default="", description="Full description")
    videos: List[Video] = Field(default_factory=list, description="Episodes, sorted by season then episode")

    class Config:
        from_attributes = True

class BehaviorHints(BaseModel):
    headers: Dict[str, str] = Field(default_factory=dict, description="Headers the player must send")

class Stream(BaseModel):
    name: str = Field(..., description="Source label, e.g. 'UAKINO - Плеєр 1'")
    title: str = Field(..., description="Quality label shown to the user")
    url: str = Field(..., description="Playable HLS variant URL")
    behaviorHints: BehaviorHints = Field(default_factory=BehaviorHints)

    class Config:
        from_attributes = True

class HlsVariant(BaseModel):
    height: int = Field(0, description="Vertical resolution, 0 when the playlist does not declare it")
    label: str = Field("SD", description="Quality label")
    url: str = Field(..., description="Absolute variant URL")

class PlayerSource(BaseModel):
    url: str = Field(..., description="Player page URL from the playlist's data-file attribute")
    title: str = Field(..., description="Player or voice-over title")

class CategorizedItems(BaseModel):
    movies: List[MetaPreview] = Field(default_factory=list)
    series: List[MetaPreview] = Field(default_factory=list)

    def for_type(self, content_type: str) -> List[MetaPreview]:
        if content_type == 'movie':
            return self.movies
        if content_type == 'series':
            return self.series
        return []

class ItemId(BaseModel):
    prefix: str = Field(..., description="Add-on id prefix")
    type: ContentType = Field(..., description="Content type")
    path: str = Field(..., description="Decoded site path without the leading slash")
    season: Optional[int] = Field(default=None, description="Season number for episode ids")
    episode: Optional[int] = Field(default=None, description="Episode number for episode ids")

    @property
    def is_episode(self) -> bool:
        return self.season is not None and self.episode is not None

class ManifestExtra(BaseModel):
    name: str
    options: Optional[List[str]] = None
    isRequired: Optional[bool] = None

class ManifestCatalog(BaseModel):
    id: str
    type: ContentType
    name: str
    extra: Optional[List[ManifestExtra]] = None

class Manifest(BaseModel):
    id: str
    version: str
    name: str
    description: str
    logo: str
    types: List[ContentType]
    catalogs: List[ManifestCatalog]
    resources: List[str]

class CatalogResponse(BaseModel):
    metas: List[MetaPreview] = Field(default_factory=list)

class MetaResponse(BaseModel):
    meta: Union[MetaDetail, Dict[str, Any]] = Field(default_factory=dict)

class StreamResponse(BaseModel):
    streams: List[Stream] = Field(default_factory=list)

class ErrorResponse(BaseModel):
    error: str = Field(..., description="Error message")
    code: Optional[int] = Field(None, description="HTTP status code")
    details: Optional[str] = Field(None, description="Additional error details")

    class Config:
        from_attributes = True
