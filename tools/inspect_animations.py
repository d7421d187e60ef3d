#!/usr/bin/env python3
"""
GLTF Animation Inspector

Loads a GLTF/GLB model through the animation core and reports:
- Node hierarchy
- Animation clips with channel targets and durations
- Skins and joint budget usage
- Optionally, the posed global transforms of a clip at a given time

Usage:
    python tools/inspect_animations.py path/to/model.glb
    python tools/inspect_animations.py path/to/model.glb --clip Walk --time 0.5
"""

from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys
from typing import Sequence

import numpy as np

ROOT = Path(__file__).resolve().parents[1]

SRC_DIR = ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))


def _print_hierarchy(graph, node_id: int, depth: int = 0):
    node = graph[node_id]
    extras = []
    if node.mesh is not None:
        extras.append(f"mesh={node.mesh}")
    if node.skin is not None:
        extras.append(f"skin={node.skin}")
    suffix = f" ({', '.join(extras)})" if extras else ""
    print(f"   {'  ' * depth}{node.id}: {node.name}{suffix}")
    for child in node.children:
        _print_hierarchy(graph, child, depth + 1)


def _print_clips(model):
    print("\nAnimations:")
    if not model.clips:
        print("   (none)")
        return
    for index, clip in enumerate(model.clips):
        print(f"   {index}: '{clip.name}' {clip.duration:.3f}s, {len(clip.channels)} channels")
        for channel in clip.channels:
            print(f"      node {channel.target_node} {channel.target_property.value:<11} "
                  f"{channel.interpolation.value:<11} {len(channel.track)} keys")


def _print_skins(model, max_joints: int):
    print("\nSkins:")
    if not model.skins:
        print("   (none)")
        return
    for index, skin in enumerate(model.skins):
        print(f"   {index}: '{skin.name}' {skin.joint_count}/{max_joints} joints")


def _print_pose(model, clip_id: str, time: float):
    controller = model.animation_controller
    controller.play(clip_id)
    controller.play_tick(time)

    print(f"\nPose of '{clip_id}' at {time:.3f}s:")
    table = controller.transform_table
    for node in model.graph:
        if not table.animated[node.id]:
            continue
        translation = np.round(controller.global_matrices[node.id][3, :3], 4)
        print(f"   {node.id}: {node.name} world position {translation.tolist()}")


def cli(argv: Sequence[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Inspect the animation data of a GLTF/GLB model.",
    )
    parser.add_argument("model", help="Path to a .gltf or .glb file")
    parser.add_argument("--clip", help="Clip name (or index) to pose")
    parser.add_argument("--time", type=float, default=0.0, help="Sample time in seconds (default 0)")
    parser.add_argument("--verbose", action="store_true", help="Show loader debug logs")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    from posekit.animation import AnimationError
    from posekit.config.settings import MAX_JOINTS
    from posekit.loaders import GltfLoader

    try:
        model = GltfLoader().load(args.model)
    except (AnimationError, FileNotFoundError) as exc:
        print(f"ERROR: {exc}")
        return 1

    print(f"\nModel '{model.name}'")
    print("\nNode hierarchy:")
    for root in model.graph.roots:
        _print_hierarchy(model.graph, root)

    _print_clips(model)
    _print_skins(model, MAX_JOINTS)

    if args.clip is not None:
        clip_id = int(args.clip) if args.clip.isdigit() else args.clip
        try:
            _print_pose(model, clip_id, args.time)
        except KeyError as exc:
            print(f"ERROR: {exc}")
            return 1

    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """CLI-compatible entry point."""

    return cli(argv)


if __name__ == "__main__":
    raise SystemExit(cli())
