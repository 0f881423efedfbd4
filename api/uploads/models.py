"""
Models for the Uploads API
"""

from enum import Enum
from pathlib import Path
from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, Unicode, UnicodeText


# Tables that reference uploaded files.
# Only the columns read by the upload tools are mapped.

class Product(SQLModel, table=True):
    """Products: main image, optional 3D model and a JSON array of thumbnails"""
    __tablename__ = "Products"

    product_id: int | None = Field(
        default=None, sa_column=Column("ProductID", Integer, primary_key=True)
    )
    image_url: str | None = Field(default=None, sa_column=Column("ImageURL", Unicode(1024)))
    thumbnail_urls: str | None = Field(
        default=None, sa_column=Column("ThumbnailURLs", UnicodeText)
    )
    model_3d: str | None = Field(default=None, sa_column=Column("Model3D", Unicode(1024)))


class ProductVariation(SQLModel, table=True):
    __tablename__ = "ProductVariations"

    variation_id: int | None = Field(
        default=None, sa_column=Column("VariationID", Integer, primary_key=True)
    )
    variation_image_url: str | None = Field(
        default=None, sa_column=Column("VariationImageURL", Unicode(1024))
    )


class ProjectItem(SQLModel, table=True):
    __tablename__ = "project_items"

    id: int | None = Field(default=None, primary_key=True)
    main_image_url: str | None = Field(default=None, max_length=1024)


class ProjectThumbnail(SQLModel, table=True):
    """A project item has many thumbnails; rows are identified by item and url"""
    __tablename__ = "project_thumbnails"

    id: int | None = Field(default=None, primary_key=True)
    project_item_id: int = Field(index=True)
    image_url: str | None = Field(default=None, max_length=1024)


class Testimonial(SQLModel, table=True):
    __tablename__ = "Testimonials"

    id: int | None = Field(default=None, sa_column=Column("ID", Integer, primary_key=True))
    image_url: str | None = Field(default=None, sa_column=Column("ImageUrl", Unicode(1024)))


class HeroBanner(SQLModel, table=True):
    """Hero banner images are stored as a JSON array"""
    __tablename__ = "HeroBanner"

    id: int | None = Field(default=None, sa_column=Column("ID", Integer, primary_key=True))
    hero_banner_images: str | None = Field(
        default=None, sa_column=Column("HeroBannerImages", UnicodeText)
    )


class UrlSource(SQLModel):
    """
    A table and the columns in it that hold upload URLs.
    url_columns hold a single URL, json_columns hold a JSON array of URLs.
    key_columns identify a row; sources without them are never repaired.
    """
    name: str
    table_name: str
    url_columns: list[str] = []
    json_columns: list[str] = []
    key_columns: list[str] = []


DEFAULT_SOURCES: list[UrlSource] = [
    UrlSource(
        name="products",
        table_name=Product.__tablename__,
        url_columns=["ImageURL", "Model3D"],
        json_columns=["ThumbnailURLs"],
        key_columns=["ProductID"],
    ),
    UrlSource(
        name="variations",
        table_name=ProductVariation.__tablename__,
        url_columns=["VariationImageURL"],
        key_columns=["VariationID"],
    ),
    UrlSource(
        name="project_items",
        table_name=ProjectItem.__tablename__,
        url_columns=["main_image_url"],
        key_columns=["id"],
    ),
    UrlSource(
        name="project_thumbnails",
        table_name=ProjectThumbnail.__tablename__,
        url_columns=["image_url"],
        key_columns=["project_item_id"],
    ),
    UrlSource(
        name="testimonials",
        table_name=Testimonial.__tablename__,
        url_columns=["ImageUrl"],
        key_columns=["ID"],
    ),
    UrlSource(
        name="hero_banner",
        table_name=HeroBanner.__tablename__,
        json_columns=["HeroBannerImages"],
        key_columns=["ID"],
    ),
]


class UploadLocation(SQLModel):
    """Where uploads live on disk and how they are addressed in the db"""
    public_dir: Path
    url_prefix: str = "/uploads/"

    @property
    def uploads_dir(self) -> Path:
        return self.public_dir / self.url_prefix.strip("/")

    @property
    def quarantine_dir(self) -> Path:
        return self.uploads_dir / "_quarantine"


class SourceSummary(SQLModel):
    """
    Outcome of reading one source.
    error is None unless the query itself failed, so an absent table can be
    told apart from an empty one.
    """
    name: str
    table_name: str
    rows: int = 0
    url_count: int = 0
    json_errors: int = 0
    error: str | None = None


class ReconciliationCounts(SQLModel):
    raw_url_count: int
    excluded_url_count: int
    referenced_url_count: int
    filesystem_file_count: int
    matched_count: int
    missing_count: int
    orphan_count: int


class UploadReport(SQLModel):
    """Result of cross-checking db references against files on disk"""
    counts: ReconciliationCounts
    missing: list[str]
    orphans_preview: list[str]
    sources: list[SourceSummary]


class CleanupMode(str, Enum):
    QUARANTINE = "quarantine"
    DELETE = "delete"


class CleanupRequest(SQLModel):
    mode: CleanupMode = CleanupMode.QUARANTINE
    dry_run: bool = True
    min_age_days: int = Field(default=7, ge=0)


class CleanupAction(SQLModel):
    action: CleanupMode
    path: str
    destination: str | None = None
    ok: bool = True
    error: str | None = None


class CleanupCounts(SQLModel):
    total_files: int
    referenced_path_count: int
    orphan_candidates: int
    succeeded: int
    failed: int


class CleanupReport(SQLModel):
    mode: CleanupMode
    dry_run: bool
    min_age_days: int
    counts: CleanupCounts
    actions_preview: list[CleanupAction]
    sources: list[SourceSummary]


class FixMode(str, Enum):
    NULL = "null"
    PLACEHOLDER = "placeholder"


DEFAULT_PLACEHOLDER_URL = "/uploads/products/images/placeholder.png"


class FixMissingRequest(SQLModel):
    mode: FixMode = FixMode.NULL
    placeholder_url: str = DEFAULT_PLACEHOLDER_URL
    dry_run: bool = True


class ReferenceUpdate(SQLModel):
    """One row rewritten (or, in a dry run, to be rewritten)"""
    source: str
    table_name: str
    keys: dict[str, int | str | None]
    columns: list[str]


class FixMissingReport(SQLModel):
    mode: FixMode
    placeholder_url: str | None
    dry_run: bool
    updated: int
    updates: list[ReferenceUpdate]
    sources: list[SourceSummary]
