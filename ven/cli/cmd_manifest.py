"""CLI — 清单命令（init / list）"""

from __future__ import annotations

import click

from ven.cli import _run, _split_csv


def register(group: click.Group) -> None:
    group.add_command(init)
    group.add_command(list_packages)


@click.command()
@click.option("--exclude-builds", multiple=True, help="排除的构建标签，逗号分隔")
@click.option("--exclude-dirs", multiple=True, help="排除的目录名，逗号分隔")
def init(exclude_builds: tuple[str, ...], exclude_dirs: tuple[str, ...]) -> None:
    """为当前项目创建 Manifest.yml"""
    builds = _split_csv(exclude_builds) if exclude_builds else None
    dirs = _split_csv(exclude_dirs) if exclude_dirs else None
    manifest = _run(lambda svc: svc.init(exclude_builds=builds, exclude_dirs=dirs))
    click.echo(f"已创建清单，排除构建标签: {', '.join(sorted(manifest.exclude_build)) or '-'}")


@click.command(name="list")
def list_packages() -> None:
    """列出清单中的全部包"""
    packages = _run(lambda svc: svc.list_packages())
    if not packages:
        click.echo("清单中没有包。")
        return
    for p in packages:
        click.echo(f"  {p.name:50s} {p.version or '-':16s} {p.commit_hash[:12]}")
