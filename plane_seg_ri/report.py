#!/usr/bin/env python3
import json

BLOCK_COLOR = [0.5, 0.4, 0.5]
BLOCK_ALPHA = 1.0


def block_uuid(cycle_index, block_index):
    return f"{cycle_index}_{block_index + 1}"


def result_to_items(result, cycle_index=0, name_prefix="mNamePrefix"):
    """Key-value description of each block, keyed by its uuid."""
    items = {}
    for i, block in enumerate(result.blocks):
        uuid = block_uuid(cycle_index, i)
        items[uuid] = {
            "classname": "BoxAffordanceItem",
            "pose": [list(block.pose.position), list(block.pose.orientation)],
            "uuid": uuid,
            "Dimensions": list(block.size),
            "Color": list(BLOCK_COLOR),
            "Alpha": BLOCK_ALPHA,
            "Name": f"{name_prefix} {i}",
        }
    return items


def format_result_report(result, cycle_index=0, name_prefix="mNamePrefix"):
    return json.dumps(result_to_items(result, cycle_index, name_prefix), indent=2)
