"""varistore - derived artifact variants with a cache/store lifecycle.

Declare a tree of named variants once per uploader type, then bind it to an
artifact at runtime:

    avatar = UploaderType("avatar")
    avatar.version("thumb", lambda v: v.process(make_thumbnail))
    avatar.version("preview", condition="is_image", depends_on="thumb")

    uploader = Uploader(avatar, storage=InMemoryArtifactStore())
    uploader.cache(Artifact(data=raw, filename="photo.png"))
    uploader.store()
    uploader.url("thumb")
"""

from varistore.conditions import Condition, NamedCheck, NoCondition, Predicate
from varistore.config import RedeclarePolicy, VariantSettings, load_settings
from varistore.definitions import (
    DefinitionRegistry,
    UploaderType,
    VariantDefinition,
    VariantOptions,
)
from varistore.errors import (
    CircularDependencyError,
    DuplicateVariantError,
    InvalidCacheNameError,
    InvalidVariantNameError,
    MissingDependencyError,
    ProcessingError,
    RegistrySealedError,
    UnknownVariantError,
    VariantDeclarationError,
    VariantError,
)
from varistore.lifecycle import LifecycleDriver
from varistore.models import Artifact, UploaderState
from varistore.paths import PathResolver
from varistore.processing import ProcessingPipeline
from varistore.storage import (
    ArtifactNotFoundError,
    ArtifactStore,
    FilesystemArtifactStore,
    InMemoryArtifactStore,
    StorageError,
)
from varistore.uploader import Uploader

__all__ = [
    "Artifact",
    "ArtifactNotFoundError",
    "ArtifactStore",
    "CircularDependencyError",
    "Condition",
    "DefinitionRegistry",
    "DuplicateVariantError",
    "FilesystemArtifactStore",
    "InMemoryArtifactStore",
    "InvalidCacheNameError",
    "InvalidVariantNameError",
    "LifecycleDriver",
    "MissingDependencyError",
    "NamedCheck",
    "NoCondition",
    "PathResolver",
    "Predicate",
    "ProcessingError",
    "ProcessingPipeline",
    "RedeclarePolicy",
    "RegistrySealedError",
    "StorageError",
    "UnknownVariantError",
    "Uploader",
    "UploaderState",
    "UploaderType",
    "VariantDeclarationError",
    "VariantDefinition",
    "VariantError",
    "VariantOptions",
    "VariantSettings",
    "load_settings",
]
