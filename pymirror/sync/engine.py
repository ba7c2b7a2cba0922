"""Reconciliation of a remote tree snapshot against local directories.

The traversal is synchronous: the remote tree is already in memory when it
runs, and only the local filesystem is inspected. The latest remote
timestamp seen while processing a rule is threaded through the recursion as
an explicit accumulator.
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Optional

from ..cancellation import CancellationToken, raise_if_cancelled
from ..models import RemoteNode, UpdateRule
from ..tree import RemoteTree
from ..utils import is_safe_name
from .comparator import VersionComparator, get_version_comparator
from .items import DownloadUpdateItem, UpdateItem, UpdateTask, paths_to_delete_items

if TYPE_CHECKING:
    from ..sources.base import UpdateSource

logger = logging.getLogger(__name__)


def _latest(current: Optional[datetime], candidate: Optional[datetime]) -> Optional[datetime]:
    if candidate is None:
        return current
    if current is None or candidate > current:
        return candidate
    return current


def _list_local(
    local_dir: Path,
) -> tuple[dict[str, list[Path]], dict[str, list[Path]]]:
    """Return the files and directories directly inside ``local_dir``.

    Both dictionaries are keyed by the case-folded entry name and hold every
    entry with that key, so names differing only in case are all kept. A
    missing directory yields two empty dictionaries.
    """
    files: dict[str, list[Path]] = {}
    dirs: dict[str, list[Path]] = {}
    if not local_dir.is_dir():
        return files, dirs

    for entry in sorted(local_dir.iterdir()):
        key = entry.name.casefold()
        if entry.is_dir() and not entry.is_symlink():
            dirs.setdefault(key, []).append(entry)
        else:
            files.setdefault(key, []).append(entry)
    return files, dirs


def _take_local(pending: dict[str, list[Path]], name: str) -> Optional[Path]:
    """Consume the local entry matching a remote name.

    An exact-case match is preferred, otherwise the first case-insensitive
    one. Entries left in ``pending`` are extraneous.
    """
    key = name.casefold()
    candidates = pending.get(key)
    if not candidates:
        return None

    match = next((path for path in candidates if path.name == name), candidates[0])
    candidates.remove(match)
    if not candidates:
        del pending[key]
    return match


def process_directory(
    tree: RemoteTree,
    remote_dir: RemoteNode,
    local_dir: Path,
    recursive: bool,
    remove_extraneous: bool,
    comparator: VersionComparator,
    source: "UpdateSource",
    cancel_token: Optional[CancellationToken] = None,
    latest: Optional[datetime] = None,
) -> tuple[list[UpdateItem], Optional[datetime]]:
    """Diff one remote directory against one local directory.

    Args:
        tree: Snapshot the remote directory belongs to
        remote_dir: Remote directory node
        local_dir: Corresponding local directory (may not exist yet)
        recursive: Whether to descend into subdirectories
        remove_extraneous: Whether leftover local entries become deletions
        comparator: Versioning comparator of the rule
        source: Source that will perform the downloads
        cancel_token: Optional cancellation token
        latest: Latest remote file timestamp seen so far for this rule

    Returns:
        Tuple of (update items, updated latest timestamp)

    Raises:
        MirrorCancelledError: If cancellation was requested
    """
    results: list[UpdateItem] = []
    pending_files, pending_dirs = _list_local(local_dir)
    targeted: set[str] = set()

    for remote_item in tree.children(remote_dir):
        raise_if_cancelled(cancel_token)

        if not is_safe_name(remote_item.name):
            logger.warning(
                f"Skipping remote entry with unusable name {remote_item.name!r} "
                f"in {local_dir}"
            )
            continue

        key = remote_item.name.casefold()

        if remote_item.is_file:
            latest = _latest(latest, remote_item.timestamp)

            if key in targeted:
                logger.warning(
                    f"Skipping {remote_item.name!r}: another remote entry in the same "
                    f"directory maps to the same local name in {local_dir}"
                )
                continue
            targeted.add(key)

            local_file = _take_local(pending_files, remote_item.name)
            if local_file is None:
                local_file = local_dir / remote_item.name
                is_current = False
            else:
                is_current = comparator(remote_item, local_file)

            if not is_current:
                logger.debug(f"Needs update: {local_file}")
                results.append(DownloadUpdateItem(remote_item, source, local_file))

        elif remote_item.is_directory:
            if not recursive:
                # Same-named local directory is out of scope, not extraneous
                pending_dirs.pop(key, None)
                continue

            if key in targeted:
                logger.warning(
                    f"Skipping directory {remote_item.name!r}: another remote entry in "
                    f"the same directory maps to the same local name in {local_dir}"
                )
                continue
            targeted.add(key)

            local_sub = _take_local(pending_dirs, remote_item.name)
            if local_sub is None:
                local_sub = local_dir / remote_item.name
            sub_items, latest = process_directory(
                tree,
                remote_item,
                local_sub,
                recursive,
                remove_extraneous,
                comparator,
                source,
                cancel_token,
                latest,
            )
            results.extend(sub_items)

    raise_if_cancelled(cancel_token)

    if remove_extraneous:
        leftovers = [path for paths in pending_files.values() for path in paths]
        if recursive:
            leftovers.extend(path for paths in pending_dirs.values() for path in paths)
        for path in leftovers:
            logger.debug(f"Extraneous: {path}")
        # Deletions precede the downloads of the same directory
        results[:0] = paths_to_delete_items(sorted(leftovers))

    return results, latest


def build_update_task(
    source: "UpdateSource",
    tree: RemoteTree,
    rule: UpdateRule,
    cancel_token: Optional[CancellationToken] = None,
) -> UpdateTask:
    """Produce the UpdateTask for a single rule.

    Raises:
        ServerPathNotFoundError: If the rule's server path does not resolve
        MirrorConfigError: If the rule's versioning mode is unknown
        MirrorCancelledError: If cancellation was requested
    """
    raise_if_cancelled(cancel_token)

    remote_dir = tree.resolve_directory(rule.server_path)
    comparator = get_version_comparator(rule.versioning)

    items, latest = process_directory(
        tree,
        remote_dir,
        rule.client_path,
        rule.recursive,
        rule.remove_extraneous,
        comparator,
        source,
        cancel_token,
    )

    name = rule.name or remote_dir.name or rule.server_path
    logger.info(f"{name}: {len(items)} update item(s)")
    return UpdateTask(name=name, items=items, rule=rule, modified=latest)


def collect_tasks(
    source: "UpdateSource",
    tree: RemoteTree,
    rules: list[UpdateRule],
    cancel_token: Optional[CancellationToken] = None,
) -> list[UpdateTask]:
    """Produce one UpdateTask per rule, in manifest order.

    The first failing rule aborts the call; callers that want to isolate
    rules from each other can call build_update_task per rule instead.
    """
    return [build_update_task(source, tree, rule, cancel_token) for rule in rules]
