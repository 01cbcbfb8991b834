"""Main CLI entry point for hubmirror."""

import argparse
import json
import sys
import logging
from typing import Dict, Any

from .config.settings import Config
from .operations.branches import BranchOperation
from .operations.catalog import CatalogOperation
from .operations.listing import ListOperation, SchemaOperation
from .operations.metadata import MetadataOperation
from .operations.sync import SyncOperation
from .operations.sync_spec import SyncSpecOperation
from .upstream.delegate import DockerHubDelegate
from .upstream.snapshot_client import SnapshotRegistryClient
from .models.keys import ImageLookupKey
from .utils.logger import setup_logging


logger = logging.getLogger(__name__)


def print_json_output(data: Dict[str, Any]):
    """Print formatted JSON output."""
    print(json.dumps(data, indent=2, default=str))


def fail(operation: str, error: Exception):
    """Report a failed command and exit."""
    logger.error(f"{operation} failed: {error}")
    print_json_output({
        "Operation": operation,
        "Status": "Failed",
        "Error": str(error)
    })
    sys.exit(1)


def handle_init_db(args):
    """Handle init-db command."""
    try:
        with SchemaOperation(Config()) as schema_op:
            result = schema_op.init_schema()
        print_json_output({"Operation": "InitDb", "Status": "Success", "Result": result})
    except Exception as e:
        fail("InitDb", e)


def handle_list(args):
    """Handle list command."""
    try:
        with ListOperation(Config()) as list_op:
            repositories = list_op.list_repositories(include_hidden=args.all)
        print_json_output({"Operation": "List", "Repositories": repositories})
    except Exception as e:
        fail("List", e)


def handle_add(args):
    """Handle add command."""
    try:
        with CatalogOperation(Config()) as catalog_op:
            result = catalog_op.add(args.target, sync_enabled=not args.disabled)
        print_json_output({"Operation": "Add", "Status": "Success", "Result": result})
    except Exception as e:
        fail("Add", e)


def handle_remove(args):
    """Handle remove command."""
    try:
        with CatalogOperation(Config()) as catalog_op:
            result = catalog_op.remove(args.target)
        print_json_output({"Operation": "Remove", "Status": "Success", "Result": result})
    except Exception as e:
        fail("Remove", e)


def handle_sync(args):
    """Handle sync command."""
    try:
        with SyncOperation(Config(), args.snapshot) as sync_op:
            result = sync_op.sync(repository_filter=args.repository, num_workers=args.num_workers)
        sync_results = result['sync_results']
        
        output = {
            "Operation": "Sync",
            "Summary": {
                "Completed": result['completed'],
                "Repositories": result['repositories'],
                "Images": sync_results['total_images'],
                "Updated": sync_results['updated_images'],
                "Skipped": sync_results['skipped_images'],
                "Failed": sync_results['failed_images']
            }
        }
        
        if sync_results['errors']:
            output["Errors"] = sync_results['errors'][:5]  # Show first 5 errors
        
        print_json_output(output)
        
        if sync_results['failed_images'] > 0:
            sys.exit(1)
            
    except Exception as e:
        fail("Sync", e)


def handle_track(args):
    """Handle track command."""
    try:
        with BranchOperation(Config()) as branch_op:
            result = branch_op.track(args.image, args.branch)
        print_json_output({"Operation": "Track", "Status": "Success", "Image": result})
    except Exception as e:
        fail("Track", e)


def handle_untrack(args):
    """Handle untrack command."""
    try:
        with BranchOperation(Config()) as branch_op:
            result = branch_op.untrack(args.image, args.branch)
        print_json_output({"Operation": "Untrack", "Status": "Success", "Image": result})
    except Exception as e:
        fail("Untrack", e)


def handle_set_sync(args):
    """Handle set-sync command."""
    try:
        with SyncSpecOperation(Config()) as sync_spec_op:
            result = sync_spec_op.set_sync(args.target, args.enable)
        print_json_output({"Operation": "SetSync", "Status": "Success", "Result": result})
    except Exception as e:
        fail("SetSync", e)


def handle_meta(args):
    """Handle meta command."""
    try:
        with MetadataOperation(Config()) as metadata_op:
            result = None
            if args.url:
                urls = dict(parse_url_argument(u) for u in args.url)
                result = metadata_op.update_external_urls(args.image, urls)
            if args.base_image or args.category or args.logo or result is None:
                result = metadata_op.update_general_info(
                    args.image,
                    base_image=args.base_image,
                    category=args.category,
                    logo_path=args.logo
                )
        print_json_output({"Operation": "Meta", "Status": "Success", "Result": result})
    except Exception as e:
        fail("Meta", e)


def handle_template(args):
    """Handle template command."""
    try:
        with MetadataOperation(Config()) as metadata_op:
            result = metadata_op.update_template(args.image, args.file)
        print_json_output({"Operation": "Template", "Status": "Success", "Result": result})
    except Exception as e:
        fail("Template", e)


def handle_latest_tag(args):
    """Handle latest-tag command."""
    try:
        lookup_key = ImageLookupKey.parse(args.image)
        delegate = DockerHubDelegate(SnapshotRegistryClient(args.snapshot))
        tag = delegate.fetch_latest_image_tag(lookup_key.repository_name, lookup_key.image_name, args.branch)
        print_json_output({
            "Operation": "LatestTag",
            "Image": str(lookup_key),
            "Branch": args.branch,
            "Tag": tag
        })
        if tag is None:
            sys.exit(1)
    except Exception as e:
        fail("LatestTag", e)


def parse_url_argument(value: str):
    """Split a NAME=URL argument."""
    name, sep, url = value.partition('=')
    if not sep or not name or not url:
        raise ValueError(f"Expected NAME=URL, got '{value}'")
    return name, url


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='hubmirror',
        description='Mirrors container registry metadata and tracks which version each branch tag points at.'
    )
    
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        default='INFO',
        help='Set logging level (default: INFO)'
    )
    parser.add_argument(
        '--log-file',
        help='Log to file in addition to console'
    )
    
    subparsers = parser.add_subparsers(dest='command', help='Available commands')
    
    init_parser = subparsers.add_parser('init-db', help='Create the mirror tables')
    init_parser.set_defaults(func=handle_init_db)
    
    list_parser = subparsers.add_parser('list', help='List mirrored repositories and images')
    list_parser.add_argument(
        '--all',
        action='store_true',
        help='Include repositories with sync disabled'
    )
    list_parser.set_defaults(func=handle_list)
    
    add_parser = subparsers.add_parser('add', help='Add a repository or image')
    add_parser.add_argument('target', help='REPOSITORY or REPOSITORY/IMAGE')
    add_parser.add_argument(
        '--disabled',
        action='store_true',
        help='Create with sync disabled'
    )
    add_parser.set_defaults(func=handle_add)
    
    remove_parser = subparsers.add_parser('remove', help='Remove a repository or image')
    remove_parser.add_argument('target', help='REPOSITORY or REPOSITORY/IMAGE')
    remove_parser.set_defaults(func=handle_remove)
    
    # Sync command
    sync_parser = subparsers.add_parser(
        'sync',
        help='Apply upstream state to the mirror',
        description='Refreshes statistics and tracked branch tags of every mirrored image from an upstream snapshot.'
    )
    sync_parser.add_argument(
        '--snapshot',
        required=True,
        help='YAML or JSON snapshot exported from the upstream registry'
    )
    sync_parser.add_argument(
        '--repository',
        help='Name of a single repository to sync (default: all repositories)'
    )
    sync_parser.add_argument(
        '--num-workers',
        type=int,
        help='Number of sync workers to operate in parallel (default: from config, or 5)'
    )
    sync_parser.set_defaults(func=handle_sync)
    
    track_parser = subparsers.add_parser('track', help='Track a branch tag on an image')
    track_parser.add_argument('image', help='REPOSITORY/IMAGE')
    track_parser.add_argument('branch', help='Branch tag to track, e.g. latest')
    track_parser.set_defaults(func=handle_track)
    
    untrack_parser = subparsers.add_parser('untrack', help='Stop tracking a branch tag on an image')
    untrack_parser.add_argument('image', help='REPOSITORY/IMAGE')
    untrack_parser.add_argument('branch', help='Tracked branch tag')
    untrack_parser.set_defaults(func=handle_untrack)
    
    set_sync_parser = subparsers.add_parser('set-sync', help='Enable or disable sync for a repository or image')
    set_sync_parser.add_argument('target', help='REPOSITORY or REPOSITORY/IMAGE')
    enable_group = set_sync_parser.add_mutually_exclusive_group(required=True)
    enable_group.add_argument('--enable', dest='enable', action='store_true')
    enable_group.add_argument('--disable', dest='enable', action='store_false')
    set_sync_parser.set_defaults(func=handle_set_sync)
    
    meta_parser = subparsers.add_parser('meta', help='Update display metadata of an image')
    meta_parser.add_argument('image', help='REPOSITORY/IMAGE')
    meta_parser.add_argument('--base-image', help='Base image the image is built on')
    meta_parser.add_argument('--category', help='Category shown for the image')
    meta_parser.add_argument('--logo', help='Logo file to upload')
    meta_parser.add_argument(
        '--url',
        action='append',
        help='External link as NAME=URL (repeatable; replaces existing links)'
    )
    meta_parser.set_defaults(func=handle_meta)
    
    template_parser = subparsers.add_parser('template', help='Merge a container template into an image')
    template_parser.add_argument('image', help='REPOSITORY/IMAGE')
    template_parser.add_argument('--file', required=True, help='YAML template file')
    template_parser.set_defaults(func=handle_template)
    
    latest_parser = subparsers.add_parser('latest-tag', help='Resolve the versioned tag a branch points at')
    latest_parser.add_argument('image', help='REPOSITORY/IMAGE')
    latest_parser.add_argument('--snapshot', required=True, help='Upstream snapshot file')
    latest_parser.add_argument('--branch', default='latest', help='Branch tag to resolve (default: latest)')
    latest_parser.set_defaults(func=handle_latest_tag)
    
    return parser


def main():
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args()
    
    if not args.command:
        parser.print_help()
        sys.exit(1)
    
    setup_logging(args.log_level, args.log_file)
    
    args.func(args)


if __name__ == '__main__':
    main()
