from typing import List

def parse_ids(raw: str) -> List[int]:
    """Comma separated Discord ids, blanks ignored. Raises ValueError on anything else."""
    ids = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue
        if not part.isdigit():
            raise ValueError(f"Invalid id: {part}")
        ids.append(int(part))
    # keep order, drop duplicates
    return list(dict.fromkeys(ids))
