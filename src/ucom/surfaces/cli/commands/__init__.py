from .build import register_build_commands
from .cleanup import register_cleanup_commands
from .editor import register_editor_commands

__all__ = [
    "register_build_commands",
    "register_cleanup_commands",
    "register_editor_commands",
]
