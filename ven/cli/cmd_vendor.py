"""CLI — vendor 命令（fetch / get / install）"""

from __future__ import annotations

import click

from ven.cli import _run


def register(group: click.Group) -> None:
    group.add_command(fetch)
    group.add_command(get)
    group.add_command(install)


@click.command()
@click.option("-u", "--update", is_flag=True, help="更新已在清单中的包")
@click.option("-v", "--verbose", is_flag=True, help="输出调试日志")
def fetch(update: bool, verbose: bool) -> None:
    """扫描当前项目并拉取全部依赖"""
    manifest = _run(lambda svc: svc.fetch(update=update), verbose)
    click.echo(f"完成: {len(manifest.packages)} 个包")


@click.command()
@click.argument("packages", nargs=-1, required=True)
@click.option("-u", "--update", is_flag=True, help="包已存在时更新")
@click.option("--update-deps", is_flag=True, help="同时更新依赖包")
@click.option("-c", "--constraint", is_flag=True, help="把 pkg@version 记为版本约束")
@click.option("-v", "--verbose", is_flag=True, help="输出调试日志")
def get(
    packages: tuple[str, ...],
    update: bool,
    update_deps: bool,
    constraint: bool,
    verbose: bool,
) -> None:
    """拉取指定包及其依赖（file:// 前缀表示本地包，@version 指定版本）"""
    new_packages = _run(
        lambda svc: svc.get(
            list(packages),
            update=update,
            update_deps=update_deps,
            constraint=constraint,
        ),
        verbose,
    )
    for name in new_packages:
        click.echo(f"  + {name}")


@click.command()
@click.option("-v", "--verbose", is_flag=True, help="输出调试日志")
def install(verbose: bool) -> None:
    """按清单中的 commit 重新拉取 vendor 目录"""
    manifest = _run(lambda svc: svc.install(), verbose)
    click.echo(f"完成: {len(manifest.packages)} 个包")
