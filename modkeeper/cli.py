"""
CLI 模块

命令行接口实现。
"""

import asyncio
from typing import Optional

import click
from loguru import logger

from modkeeper import __version__
from modkeeper.config import load_server_config
from modkeeper.exceptions import ModKeeperError
from modkeeper.logger import setup_logger
from modkeeper.orchestrator import ModKeeperOrchestrator, UpgradePlan
from modkeeper.services import CompatibilityReport, NoCommonReason
from modkeeper.updater import PipelineResult

DIR_ARGUMENT = click.argument(
    "directory", type=click.Path(exists=True, file_okay=False), default="."
)


def build_orchestrator(directory: str) -> ModKeeperOrchestrator:
    return ModKeeperOrchestrator(load_server_config(directory))


def run_command(coro_factory):
    """运行异步命令，把 ModKeeperError 转换为 ClickException"""
    try:
        return asyncio.run(coro_factory())
    except ModKeeperError as e:
        logger.error(str(e))
        raise click.ClickException(str(e))
    except click.ClickException:
        raise
    except Exception as e:
        logger.exception(f"运行时错误: {e}")
        raise click.ClickException(f"运行时错误: {e}")


def mod_line(orchestrator: ModKeeperOrchestrator, mod) -> str:
    decl = mod.declaration
    flags = []
    if decl.is_platform:
        flags.append("[PLATFORM]")
    dependents = len(orchestrator.registry.dependents_of(decl))
    if dependents:
        flags.append(f"({dependents} dependent{'s' if dependents != 1 else ''})")
    if decl.optional:
        flags.append("[OPTIONAL]")
    suffix = f" {' '.join(flags)}" if flags else ""
    return f"  • {decl.name} ({decl.type.label}){suffix}"


def print_report(orchestrator: ModKeeperOrchestrator, report: CompatibilityReport):
    if report.common_version is None:
        if report.no_common_reason == NoCommonReason.UNSUPPORTED_MODS:
            click.echo("✗ 以下模组没有任何受支持的正式版，无法计算共同版本:")
            for mod in report.unsupported_mods:
                click.echo(f"  • {mod.name}")
        elif report.no_common_reason == NoCommonReason.NO_MODS:
            click.echo("⚠ 没有已安装的模组，无法确定最高 Minecraft 版本")
        else:
            click.echo("✗ 所有模组之间没有共同的 Minecraft 版本")
    else:
        click.echo(f"ℹ 所有模组共同支持的最高版本: {report.common_version}")

    for version, mods in orchestrator.resolver.group_by_maximum(report):
        label = version if version is not None else "无已知版本"
        marker = "★" if version is not None and version == report.highest_seen else "📌"
        click.echo(f"\n{marker} Minecraft {label}: ({len(mods)} mod{'s' if len(mods) != 1 else ''})")
        for mod in mods:
            click.echo(mod_line(orchestrator, mod))

    if report.blocking_mods:
        click.echo("\n限制升级的模组:")
        for mod in report.blocking_mods:
            impact = report.blocking_impacts.get(mod.project_id)
            note = f" - 移除会影响 {impact.total} 个模组" if impact and impact.total else ""
            click.echo(f"  • {mod.name}{note}")


def print_pipeline_result(result: PipelineResult):
    if result.applied:
        click.echo(f"✓ 已升级到 Minecraft {result.target_version}")
        if result.backup:
            click.echo(f"  备份位置: {result.backup.path}")
        click.echo("  请更新配置文件中的 minecraft_version 并启动服务器")
        return

    if result.failed:
        click.echo("✗ 以下模组更新失败，未做任何修改:")
        for outcome in result.failed:
            click.echo(f"  • {outcome.name}: {outcome.reason}")
    if result.error:
        click.echo(f"✗ {result.error}")


@click.group()
@click.option("--debug", is_flag=True, help="启用调试模式")
@click.option("--log-file", type=click.Path(dir_okay=False), help="日志文件路径")
@click.version_option(version=__version__)
def main(debug: bool, log_file: Optional[str]):
    """ModKeeper - Minecraft 服务器模组升级管理工具"""
    setup_logger(level="DEBUG" if debug else None, log_file=log_file)


@main.command("list")
@DIR_ARGUMENT
def list_mods(directory: str):
    """列出声明的模组及其安装状态"""

    async def run():
        orchestrator = build_orchestrator(directory)
        try:
            scan = orchestrator.scan()
            for mod in scan.installed:
                click.echo(
                    f"✓ {mod.name} [{mod.declaration.type.label}] - v{mod.display_version} ({mod.filename})"
                )
            for decl in scan.missing:
                click.echo(f"✗ {decl.name} - 未安装")
            for entry in scan.ambiguous:
                click.echo(f"⚠ {entry.declaration.name} - 多个文件匹配: {', '.join(entry.filenames)}")
            if scan.undeclared:
                click.echo("\n⚠ 模组目录中存在未声明的 JAR:")
                for filename in scan.undeclared:
                    click.echo(f"  • {filename}")
        finally:
            await orchestrator.close()

    run_command(run)


@main.command()
@DIR_ARGUMENT
@click.option("-i", "--ignore-optional", is_flag=True, help="计算时忽略可选模组")
def check(directory: str, ignore_optional: bool):
    """检查所有模组共同支持的最高 Minecraft 版本"""

    async def run():
        orchestrator = build_orchestrator(directory)
        try:
            await orchestrator.validate_token()
            report = await orchestrator.check(ignore_optional=ignore_optional)
            print_report(orchestrator, report)
            if report.upgrade_available:
                click.echo(f"\n🎉 可以升级到 Minecraft {report.target_version}")
            else:
                click.echo(
                    f"\nℹ 暂无可用升级，当前版本为 {orchestrator.config.minecraft_version}"
                )
        finally:
            await orchestrator.close()

    run_command(run)


def confirm_apply_retry(error: Exception) -> bool:
    click.echo(f"✗ 替换模组失败: {error}")
    return click.confirm("重试?", default=False)


@main.command()
@DIR_ARGUMENT
@click.option("-d", "--dry-run", is_flag=True, help="只显示计划，不做任何修改")
@click.option("-i", "--ignore-optional", is_flag=True, help="忽略可选模组判断兼容性")
@click.option("-f", "--force", is_flag=True, help="即使没有更新的共同版本也执行")
@click.option("-y", "--yes", is_flag=True, help="跳过确认")
def upgrade(directory: str, dry_run: bool, ignore_optional: bool, force: bool, yes: bool):
    """检查并执行服务器模组升级"""

    async def run():
        orchestrator = build_orchestrator(directory)
        try:
            await orchestrator.validate_token()
            plan: UpgradePlan = await orchestrator.plan_upgrade(
                ignore_optional=ignore_optional, force=force
            )
            print_report(orchestrator, plan.report)

            if not plan.can_proceed:
                click.echo(
                    f"\nℹ 暂无可用升级，不是所有模组都支持比 "
                    f"{orchestrator.config.minecraft_version} 更新的版本"
                )
                if not ignore_optional:
                    click.echo("  使用 --ignore-optional 忽略可选模组后再检查一次")
                return

            click.echo(f"\n🚀 目标版本: Minecraft {plan.target_version}")
            for decl in plan.declarations:
                click.echo(f"  • {decl.name}")

            if dry_run:
                click.echo("\n去掉 --dry-run 以执行升级")
                return

            click.echo("\n⚠ 请确认服务器已经停止")
            if not yes and not click.confirm("下载模组并应用更新?", default=True):
                return

            result = await orchestrator.upgrade(plan, confirm_retry=confirm_apply_retry)
            print_pipeline_result(result)
            if not result.applied:
                raise click.ClickException("升级失败")
        finally:
            await orchestrator.close()

    run_command(run)


@main.command()
@DIR_ARGUMENT
@click.argument("name")
def deps(directory: str, name: str):
    """显示模组的依赖关系"""

    async def run():
        orchestrator = build_orchestrator(directory)
        try:
            registry = orchestrator.registry
            decl = registry.find(name)
            if decl is None:
                raise click.ClickException(
                    f"找不到模组: {name}，可用模组: "
                    + ", ".join(d.name for d in registry.declarations)
                )

            click.echo(f"{decl.name} ({decl.project_id})")
            click.echo(f"类型: {decl.type.label}")
            click.echo(f"平台模组: {'是' if decl.is_platform else '否'}")

            dependents = registry.dependents_of(decl)
            if dependents:
                click.echo(f"\n依赖此模组的模组: ({len(dependents)})")
                for dependent in dependents:
                    click.echo(f"  {dependent.name} ({dependent.type.label})")
                click.echo(f"\n⚠ 移除此平台模组会破坏 {len(dependents)} 个模组")
            else:
                click.echo("\n✓ 没有模组依赖它")

            chain = orchestrator.analyzer.dependency_chain(decl)
            if chain.dependencies or chain.unresolved:
                click.echo("\n此模组依赖:")
                for dep in chain.dependencies:
                    click.echo(f"  {dep.name} ({dep.type.label})")
                for dep_id in chain.unresolved:
                    click.echo(f"  {dep_id} (未声明)")
            for cycle in chain.cycles:
                click.echo(f"⚠ 循环依赖: {' -> '.join(cycle)}")
        finally:
            await orchestrator.close()

    run_command(run)


@main.command()
@DIR_ARGUMENT
@click.argument("name")
def impact(directory: str, name: str):
    """显示移除模组的影响"""

    async def run():
        orchestrator = build_orchestrator(directory)
        try:
            decl = orchestrator.registry.find(name)
            if decl is None:
                raise click.ClickException(f"找不到模组: {name}")

            result = orchestrator.analyzer.removal_impact(decl)
            click.echo(f"{decl.name}")
            click.echo(f"平台模组: {'是' if decl.is_platform else '否'}")
            if result.safe_to_remove:
                click.echo("\n✓ 可以安全移除，没有其它模组依赖它")
                return

            click.echo(f"\n⚠ 移除会影响 {result.total} 个模组")
            if result.direct:
                click.echo(f"\n直接依赖 ({len(result.direct)}):")
                for mod in result.direct:
                    click.echo(f"  ✗ {mod.name} 会立即失效")
            if result.indirect:
                click.echo(f"\n间接依赖 ({len(result.indirect)}):")
                for mod in result.indirect:
                    click.echo(f"  ⚠ {mod.name} 依赖于会失效的模组")
        finally:
            await orchestrator.close()

    run_command(run)


@main.command()
@DIR_ARGUMENT
def platforms(directory: str):
    """列出平台模组与可移除候选"""

    async def run():
        orchestrator = build_orchestrator(directory)
        try:
            summary = orchestrator.analyzer.platform_summary()
            if not summary.active and not summary.removal_candidates:
                click.echo("没有平台模组")
                return

            if summary.active:
                click.echo(f"✓ 正在使用的平台模组 ({len(summary.active)}):")
                for decl, dependents in summary.active:
                    click.echo(f"\n{decl.name} ({decl.project_id}) - {len(dependents)} 个依赖者")
                    for dependent in dependents:
                        click.echo(f"    • {dependent.name}")

            if summary.removal_candidates:
                click.echo(f"\n⚠ 未被使用的平台模组 - 可考虑移除 ({len(summary.removal_candidates)}):")
                for decl in summary.removal_candidates:
                    click.echo(f"  {decl.name} ({decl.project_id})")
                click.echo("\n移除前请确认它们没有被未声明的模组使用")
            else:
                click.echo("\n✓ 所有平台模组都在被使用")
        finally:
            await orchestrator.close()

    run_command(run)


@main.command()
@DIR_ARGUMENT
@click.option("--backup", "backup_name", help="要恢复的备份名称，默认最新")
@click.option("-y", "--yes", is_flag=True, help="跳过确认")
def revert(directory: str, backup_name: Optional[str], yes: bool):
    """从备份恢复模组目录"""

    async def run():
        orchestrator = build_orchestrator(directory)
        try:
            backups = orchestrator.backups.list_backups()
            if not backups:
                raise click.ClickException("没有可回滚的备份")

            click.echo("可用备份（最新在前）:")
            for index, backup in enumerate(reversed(backups), start=1):
                click.echo(f"  {index}. {backup.name}")

            chosen = backup_name or backups[-1].name
            if not yes and not click.confirm(f"恢复到 {chosen}?", default=False):
                return

            restored = orchestrator.revert(chosen)
            click.echo(f"✓ 已恢复到备份: {restored.name}")
        finally:
            await orchestrator.close()

    run_command(run)


if __name__ == "__main__":
    main()
