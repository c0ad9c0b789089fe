#!/usr/bin/env python3
"""
Command line interface for Agent Memory System
Copyright 2025 Jurden Bruce

Usage:
    agent-memory store "content" --type decision --importance 8 --tags api,auth
    agent-memory search "query" --limit 5
    agent-memory update MEMORY_ID --content "new content" --importance 9
    agent-memory history MEMORY_ID
    agent-memory rollback MEMORY_ID VERSION_ID
    agent-memory link FROM_ID TO_ID relates_to
    agent-memory graph MEMORY_ID --max-depth 3
    agent-memory stats
"""

import os
import sys
import json
import asyncio
import logging
import argparse
from typing import Any, Dict, List, Optional

from .config import load_config
from .exceptions import AgentMemoryError
from .memory_store import MemoryStore
from .models import ContextType, RelationshipType

logger = logging.getLogger("agent-memory.cli")


def parse_tags(tags_str: Optional[str]) -> List[str]:
    """Parse comma-separated tags"""
    if not tags_str:
        return []
    return [tag.strip() for tag in tags_str.split(",") if tag.strip()]


def parse_ids(ids_str: str) -> List[str]:
    return [i.strip() for i in ids_str.split(",") if i.strip()]


def parse_metadata(metadata_str: str) -> dict:
    """Parse JSON metadata; used as an argparse type so bad input is a usage error"""
    try:
        metadata = json.loads(metadata_str)
    except json.JSONDecodeError as e:
        raise argparse.ArgumentTypeError(f"invalid metadata JSON: {e}")
    if not isinstance(metadata, dict):
        raise argparse.ArgumentTypeError("metadata must be a JSON object")
    return metadata


def configure_logging(level: str):
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        stream=sys.stderr,
        format="%(asctime)s [%(levelname)s] [%(name)s] %(message)s",
    )
    for logger_name in ["sentence_transformers", "urllib3", "httpx"]:
        logging.getLogger(logger_name).setLevel(logging.CRITICAL)


def format_compact(command: str, result: Dict[str, Any]) -> str:
    """Compact line-oriented output"""
    if command in ("store", "get", "update", "rollback", "merge"):
        memory = result.get("memory")
        if memory is None:
            return f"NOT_FOUND id={result.get('memory_id')}"
        return (
            f"MEMORY id={memory['id']} type={memory['context_type']} importance={memory['importance']} "
            f"tags={','.join(memory['tags'])}\n{memory['content']}"
        )
    if command in ("search", "recent", "related"):
        lines = [f"RESULTS count={result['count']}"]
        for item in result["memories"]:
            memory = item.get("memory", item)
            extra = f" similarity={item['similarity']:.3f}" if "similarity" in item else ""
            extra += f" depth={item['depth']}" if "depth" in item else ""
            lines.append(f"MEMORY id={memory['id']} type={memory['context_type']}{extra} {memory['summary']}")
        return "\n".join(lines)
    if command == "history":
        lines = [f"VERSIONS count={result['count']}"]
        for version in result["versions"]:
            lines.append(
                f"VERSION id={version['version_id']} at={version['created_at']} by={version['created_by']} "
                f"reason={version.get('change_reason') or ''}"
            )
        return "\n".join(lines)
    if command == "graph":
        graph = result["graph"]
        lines = [
            f"GRAPH root={graph['root_memory_id']} nodes={graph['total_nodes']} deepest={graph['deepest_level']} "
            f"depth_limited={graph['max_depth_reached']} node_limited={graph['node_limit_reached']}"
        ]
        for memory_id, node in graph["nodes"].items():
            lines.append(f"NODE id={memory_id} depth={node['depth']} edges={len(node['relationships'])}")
        return "\n".join(lines)
    if command == "link":
        rel = result["relationship"]
        return f"LINKED id={rel['id']} {rel['from_memory_id']} -{rel['relationship_type']}-> {rel['to_memory_id']}"
    if command == "stats":
        by_type = " ".join(f"{k}={v}" for k, v in result["by_type"].items())
        return (
            f"STATS workspace={result['workspace_id']} mode={result['mode']} total={result['total_memories']} "
            f"global={result['global_memories']} sessions={result['total_sessions']} "
            f"important={result['important_count']}\nBY_TYPE {by_type}"
        )
    return json.dumps(result, default=str)


class MemoryCLI:
    """CLI interface for memory operations"""

    def __init__(self, store: MemoryStore):
        self.store = store

    async def store_memory(self, args) -> Dict[str, Any]:
        memory = await self.store.create_memory(
            args.content,
            context_type=args.type,
            tags=parse_tags(args.tags),
            importance=args.importance,
            summary=args.summary,
            session_id=args.session_id,
            ttl_seconds=args.ttl,
            is_global=args.is_global,
            category=args.category,
        )
        return {"success": True, "memory": memory.to_dict()}

    async def get(self, args) -> Dict[str, Any]:
        memory = await self.store.get_memory(args.memory_id)
        return {"memory_id": args.memory_id, "memory": memory.to_dict() if memory else None}

    async def update(self, args) -> Dict[str, Any]:
        memory = await self.store.update_memory(
            args.memory_id,
            content=args.content,
            context_type=args.type,
            tags=parse_tags(args.tags) if args.tags is not None else None,
            importance=args.importance,
            summary=args.summary,
            category=args.category,
        )
        return {"memory_id": args.memory_id, "memory": memory.to_dict() if memory else None}

    async def delete(self, args) -> Dict[str, Any]:
        return {"memory_id": args.memory_id, "deleted": await self.store.delete_memory(args.memory_id)}

    async def search(self, args) -> Dict[str, Any]:
        results = await self.store.search_memories(
            args.query,
            limit=args.limit,
            min_importance=args.min_importance,
            context_types=parse_tags(args.types) or None,
            category=args.category,
        )
        return {"query": args.query, "count": len(results), "memories": [r.to_dict() for r in results]}

    async def recent(self, args) -> Dict[str, Any]:
        if args.type:
            memories = await self.store.get_memories_by_type(args.type, args.limit)
        elif args.tag:
            memories = await self.store.get_memories_by_tag(args.tag, args.limit)
        else:
            memories = await self.store.get_recent_memories(args.limit)
        return {"count": len(memories), "memories": [m.to_dict() for m in memories]}

    async def history(self, args) -> Dict[str, Any]:
        versions = await self.store.get_memory_history(args.memory_id, args.limit)
        return {"memory_id": args.memory_id, "count": len(versions), "versions": [v.to_dict() for v in versions]}

    async def rollback(self, args) -> Dict[str, Any]:
        memory = await self.store.rollback_memory(
            args.memory_id, args.version_id, preserve_relationships=not args.drop_relationships
        )
        return {"success": True, "memory": memory.to_dict()}

    async def link(self, args) -> Dict[str, Any]:
        rel = await self.store.create_relationship(
            args.from_memory_id, args.to_memory_id, args.relationship_type, args.metadata
        )
        return {"success": True, "relationship": rel.to_dict()}

    async def related(self, args) -> Dict[str, Any]:
        results = await self.store.get_related_memories(
            args.memory_id,
            relationship_types=parse_tags(args.types) or None,
            depth=args.depth,
            direction=args.direction,
        )
        return {"count": len(results), "memories": [r.to_dict() for r in results]}

    async def graph(self, args) -> Dict[str, Any]:
        graph = await self.store.get_memory_graph(args.memory_id, args.max_depth, args.max_nodes)
        return {"graph": graph.to_dict()}

    async def merge(self, args) -> Dict[str, Any]:
        merged = await self.store.merge_memories(parse_ids(args.memory_ids), keep_id=args.keep)
        return {"success": True, "memory": merged.to_dict()}

    async def session(self, args) -> Dict[str, Any]:
        session = await self.store.create_session(args.name, parse_ids(args.memory_ids or ""), summary=args.summary)
        return {"success": True, "session": session.to_dict()}

    async def stats(self, args) -> Dict[str, Any]:
        return await self.store.get_summary_stats()

    async def export(self, args) -> Dict[str, Any]:
        return await self.store.export_memories(
            filter_by_type=parse_tags(args.types) or None,
            min_importance=args.min_importance,
            include_embeddings=args.include_embeddings,
            limit=args.limit,
        )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="agent-memory",
        description="Command line interface for Agent Memory System",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--workspace", default=os.getcwd(), help="Workspace path (default: current directory)")
    parser.add_argument("--json", action="store_true", help="Output as JSON")
    parser.add_argument("--pretty", action="store_true", help="Pretty print JSON output")

    subparsers = parser.add_subparsers(dest="command", help="Command to execute")
    context_types = [c.value for c in ContextType]

    store_parser = subparsers.add_parser("store", help="Store a new memory")
    store_parser.add_argument("content", help="Memory content")
    store_parser.add_argument("--type", default="information", choices=context_types, help="Context type (default: information)")
    store_parser.add_argument("--importance", type=int, default=5, help="Importance 1-10 (default: 5)")
    store_parser.add_argument("--tags", help="Comma-separated tags")
    store_parser.add_argument("--summary", help="Summary (default: generated from content)")
    store_parser.add_argument("--session-id", help="Session ID")
    store_parser.add_argument("--ttl", type=int, help="Time to live in seconds (minimum 60)")
    store_parser.add_argument("--category", help="Category")
    store_parser.add_argument("--global", dest="is_global", action="store_true", help="Store in the global namespace")

    get_parser = subparsers.add_parser("get", help="Get a memory by ID")
    get_parser.add_argument("memory_id", help="Memory ID")

    update_parser = subparsers.add_parser("update", help="Update a memory")
    update_parser.add_argument("memory_id", help="Memory ID to update")
    update_parser.add_argument("--content", help="New content")
    update_parser.add_argument("--type", choices=context_types, help="New context type")
    update_parser.add_argument("--importance", type=int, help="New importance")
    update_parser.add_argument("--tags", help="New tags (comma-separated)")
    update_parser.add_argument("--summary", help="New summary")
    update_parser.add_argument("--category", help="New category")

    delete_parser = subparsers.add_parser("delete", help="Delete a memory")
    delete_parser.add_argument("memory_id", help="Memory ID")

    search_parser = subparsers.add_parser("search", help="Semantic search")
    search_parser.add_argument("query", help="Search query")
    search_parser.add_argument("--limit", type=int, default=10, help="Max results (default: 10)")
    search_parser.add_argument("--min-importance", type=int, help="Minimum importance")
    search_parser.add_argument("--types", help="Comma-separated context types")
    search_parser.add_argument("--category", help="Filter by category")

    recent_parser = subparsers.add_parser("recent", help="Most recent memories")
    recent_parser.add_argument("--limit", type=int, default=50, help="Max memories (default: 50)")
    recent_parser.add_argument("--type", choices=context_types, help="Only this context type")
    recent_parser.add_argument("--tag", help="Only memories with this tag")

    history_parser = subparsers.add_parser("history", help="Version history of a memory")
    history_parser.add_argument("memory_id", help="Memory ID")
    history_parser.add_argument("--limit", type=int, default=50, help="Max versions (default: 50)")

    rollback_parser = subparsers.add_parser("rollback", help="Restore a memory to an earlier version")
    rollback_parser.add_argument("memory_id", help="Memory ID")
    rollback_parser.add_argument("version_id", help="Version ID")
    rollback_parser.add_argument("--drop-relationships", action="store_true", help="Delete the memory's relationships")

    link_parser = subparsers.add_parser("link", help="Create a relationship")
    link_parser.add_argument("from_memory_id", help="Source memory ID")
    link_parser.add_argument("to_memory_id", help="Target memory ID")
    link_parser.add_argument("relationship_type", choices=[r.value for r in RelationshipType], help="Relationship type")
    link_parser.add_argument("--metadata", type=parse_metadata, help="JSON metadata object")

    related_parser = subparsers.add_parser("related", help="Memories linked to a memory")
    related_parser.add_argument("memory_id", help="Memory ID")
    related_parser.add_argument("--depth", type=int, default=1, help="Traversal depth 1-5 (default: 1)")
    related_parser.add_argument("--direction", default="both", choices=["outgoing", "incoming", "both"])
    related_parser.add_argument("--types", help="Comma-separated relationship types")

    graph_parser = subparsers.add_parser("graph", help="Relationship graph around a memory")
    graph_parser.add_argument("memory_id", help="Root memory ID")
    graph_parser.add_argument("--max-depth", type=int, default=2, help="Depth 1-5 (default: 2)")
    graph_parser.add_argument("--max-nodes", type=int, default=50, help="Maximum nodes (default: 50)")

    merge_parser = subparsers.add_parser("merge", help="Merge memories into a new one")
    merge_parser.add_argument("memory_ids", help="Comma-separated memory IDs")
    merge_parser.add_argument("--keep", help="Memory whose content survives")

    session_parser = subparsers.add_parser("session", help="Group memories into a named session")
    session_parser.add_argument("name", help="Session name")
    session_parser.add_argument("--memory-ids", help="Comma-separated memory IDs")
    session_parser.add_argument("--summary", help="Session summary")

    subparsers.add_parser("stats", help="Workspace statistics")

    export_parser = subparsers.add_parser("export", help="Export memories as JSON")
    export_parser.add_argument("--types", help="Comma-separated context types")
    export_parser.add_argument("--min-importance", type=int, help="Minimum importance")
    export_parser.add_argument("--include-embeddings", action="store_true", help="Include embedding vectors")
    export_parser.add_argument("--limit", type=int, help="Max memories")

    return parser


COMMANDS = {
    "store": MemoryCLI.store_memory,
    "get": MemoryCLI.get,
    "update": MemoryCLI.update,
    "delete": MemoryCLI.delete,
    "search": MemoryCLI.search,
    "recent": MemoryCLI.recent,
    "history": MemoryCLI.history,
    "rollback": MemoryCLI.rollback,
    "link": MemoryCLI.link,
    "related": MemoryCLI.related,
    "graph": MemoryCLI.graph,
    "merge": MemoryCLI.merge,
    "session": MemoryCLI.session,
    "stats": MemoryCLI.stats,
    "export": MemoryCLI.export,
}


async def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = load_config()
    if args.command not in ("search", "store", "update", "merge", "rollback"):
        # commands that never embed skip loading the encoder
        config["embedding_provider"] = "none"
    configure_logging(config["log_level"])

    try:
        store = await MemoryStore.create(os.path.abspath(args.workspace), config)
    except AgentMemoryError as e:
        print(f"ERROR {e}", file=sys.stderr)
        return 2

    try:
        result = await COMMANDS[args.command](MemoryCLI(store), args)
    except AgentMemoryError as e:
        print(f"ERROR {e}", file=sys.stderr)
        return 1
    finally:
        await store.shutdown()

    if args.json or args.pretty:
        indent = 2 if args.pretty else None
        print(json.dumps(result, indent=indent, default=str))
    else:
        print(format_compact(args.command, result))
    return 0


def run():
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
