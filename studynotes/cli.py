"""
StudyNotes 管理命令行入口模块。

提供 CLI 命令：create-admin（创建管理员账户）和 list-users（列出账户）。
直接操作数据目录，无需服务端运行。
"""
import asyncio
import logging
import sys

import click

from studynotes import __version__
from studynotes.core.config import settings
from studynotes.core.exceptions import BusinessError
from studynotes.core.storage import RecordStore
from studynotes.services.credentials import CredentialStore


@click.group()
@click.option("--data-dir", "-d", type=click.Path(file_okay=False), default=None,
              help="Data directory (defaults to DATA_DIR setting)")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.version_option(version=__version__)
@click.pass_context
def cli(ctx, data_dir, verbose):
    """StudyNotes 管理工具。"""
    ctx.ensure_object(dict)

    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    store = RecordStore(data_dir or settings.data_dir)
    store.ensure_directories()
    ctx.obj["store"] = store


@cli.command("create-admin")
@click.argument("username")
@click.argument("email")
@click.password_option("--password", "-p", help="Admin password")
@click.pass_context
def create_admin(ctx, username, email, password):
    """创建管理员账户。"""
    credentials = CredentialStore(ctx.obj["store"])
    try:
        user = asyncio.run(credentials.create_user(username, email, password, role="admin"))
    except BusinessError as e:
        click.echo(f"Error: {e.message}", err=True)
        sys.exit(1)
    click.echo(f"Created admin {user.username} ({user.id})")


@cli.command("list-users")
@click.pass_context
def list_users(ctx):
    """列出所有账户。"""
    users = asyncio.run(CredentialStore(ctx.obj["store"]).list_users())
    if not users:
        click.echo("No users")
        return
    for user in users:
        status = "active" if user.is_active else "disabled"
        click.echo(f"{user.id}\t{user.username}\t{user.email}\t{user.role}\t{status}")


def main():
    cli(obj={})


if __name__ == "__main__":
    main()
