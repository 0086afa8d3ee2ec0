"""
Tool protocol, context and result types shared by layer editing tools.
"""

from typing import Optional, Protocol


class Tool(Protocol):
    """Interface of a layer editing tool.

    Implemented structurally; tools do not subclass it.
    """

    def handle_mouse_down(
        self, tile_pos: tuple[int, int], button: int, modifiers: int, context: "ToolContext"
    ) -> "ToolResult":
        """Handle mouse button down on a layer tile."""
        ...

    def handle_mouse_up(self, button: int, context: "ToolContext") -> "ToolResult":
        """Handle mouse button up event."""
        ...

    def handle_mouse_motion(
        self, tile_pos: tuple[int, int], context: "ToolContext"
    ) -> "ToolResult":
        """Handle mouse motion over a layer tile."""
        ...

    def handle_key_down(
        self, key: int, modifiers: int, context: "ToolContext"
    ) -> "ToolResult":
        """Handle a key the application did not consume itself."""
        ...

    def reset(self) -> None:
        """Forget any stroke in progress."""
        ...


class ToolContext:
    """What a tool may touch: the layer, editor state, undo history and rules.

    Rules are looked up for the tile set resource currently loaded.
    """

    def __init__(
        self,
        layer,
        state,
        undo_manager,
        rule_library,
        notifications,
        resource_key: Optional[str] = None,
    ):
        self.layer = layer
        self.state = state
        self.undo_manager = undo_manager
        self.rule_library = rule_library
        self.notifications = notifications
        self.resource_key = resource_key

    def get_active_rule(self):
        """The rule selected in the editor state, if it is loaded."""
        if self.resource_key is None or self.state.active_rule is None:
            return None
        return self.rule_library.get_rule(self.resource_key, self.state.active_rule)

    def rule_names(self) -> list[str]:
        if self.resource_key is None:
            return []
        return self.rule_library.rule_names(self.resource_key)


class ToolResult:
    """Outcome of a tool event, optionally with a status message."""

    def __init__(
        self,
        handled: bool = False,
        needs_render: bool = False,
        layer_modified: bool = False,
        message: str | None = None,
    ):
        self.handled = handled
        self.needs_render = needs_render
        self.layer_modified = layer_modified
        self.message = message

    @staticmethod
    def handled() -> "ToolResult":
        """Event consumed without touching the layer."""
        return ToolResult(handled=True)

    @staticmethod
    def not_handled() -> "ToolResult":
        """Event not handled."""
        return ToolResult(handled=False)

    @staticmethod
    def modified(message: str | None = None) -> "ToolResult":
        """Layer content was modified; the tool has already pushed undo."""
        return ToolResult(
            handled=True,
            needs_render=True,
            layer_modified=True,
            message=message,
        )
