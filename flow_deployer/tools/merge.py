"""Name-keyed merging of a remote agent's tools with newly compiled ones."""

from __future__ import annotations

from collections.abc import Iterable

from flow_deployer.tools.templates import ToolDescriptor


def merge_tools(
    existing: list[ToolDescriptor],
    flow_tools: list[ToolDescriptor],
) -> list[ToolDescriptor]:
    """Combine *existing* remote tools with *flow_tools*.

    Existing tools whose name collides with a flow tool are dropped, as are
    repeats of a name already kept (first occurrence wins).  The rest keep
    their relative order and are followed by the flow tools.
    """
    seen = {tool.get("name") for tool in flow_tools}
    kept: list[ToolDescriptor] = []
    for tool in existing:
        name = tool.get("name")
        if name in seen:
            continue
        seen.add(name)
        kept.append(tool)
    return kept + list(flow_tools)


def remove_tools(existing: list[ToolDescriptor], names: Iterable[str]) -> list[ToolDescriptor]:
    """Return *existing* without any tool named in *names*."""
    drop = set(names)
    return [tool for tool in existing if tool.get("name") not in drop]
