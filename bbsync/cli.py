#!/usr/bin/env python3

import os

import click

from bbsync import __version__
from bbsync.config import configure_logging, get_timeout, load_config
from bbsync.cli_utils import standard_command
from bbsync.exit_codes import MissingCredentialError, PartialSuccessError
from bbsync.infra.bitbucket_client import BitbucketClient
from bbsync.render import render_summary
from bbsync.services.sync_service import SyncService, ensure_target_directory


def get_access_token(env_var: str) -> str:
    """Read the bearer token from the environment; empty counts as missing."""
    token = os.environ.get(env_var)
    if not token:
        raise MissingCredentialError(env_var)
    return token


@click.command()
@click.version_option(version=__version__, prog_name="bbsync")
@click.argument("bitbucket_domain", metavar="BITBUCKET_DOMAIN")
@click.argument("bitbucket_project", metavar="BITBUCKET_PROJECT")
@click.argument("target_directory", metavar="TARGET_DIRECTORY")
@standard_command
def cli(bitbucket_domain, bitbucket_project, target_directory):
    """git clones all repos in a Bitbucket project to a target directory.

    Repositories already present are updated instead: their most recently
    committed remote branch is checked out and pulled.

    \b
    Required env var:
        BITBUCKET_ACCESS_TOKEN

    Examples:

    \b
        bbsync bitbucket.example.com PROJ ~/src/proj
    """
    config = load_config()
    configure_logging(config)

    bitbucket_config = config.get('bitbucket', {})
    token = get_access_token(bitbucket_config.get('token_env_var', 'BITBUCKET_ACCESS_TOKEN'))

    # No point in asking Bitbucket if the target directory is unusable
    target = ensure_target_directory(target_directory)

    client = BitbucketClient(
        bitbucket_domain,
        token,
        page_limit=bitbucket_config.get('page_limit', 1000),
        timeout=get_timeout(config, 'bitbucket', default=30),
    )
    service = SyncService(target, lister=client, config=config)
    summary = service.sync_project(bitbucket_project)

    render_summary(summary)

    if not summary.success and config.get('sync', {}).get('fail_on_error', False):
        raise PartialSuccessError(
            f"{summary.failed} of {summary.total} repositories failed to sync",
            succeeded=summary.total - summary.failed,
            failed=summary.failed,
        )


def main():
    cli()

if __name__ == "__main__":
    main()
