"""
CLI for manual testing of the wake engine
"""

import asyncio
import sys

import click

from .algorithms import get_algorithm_info
from .config import WakeEngineConfig
from .logging_utils import setup_logging, get_logger
from .manager import WakeAlgorithmManager
from .models import WakeMethod
from .player import AudioPlayer
from .pygame_engine import PygamePlaybackEngine
from .service import AlarmTriggerService
from .sounds import SoundResolver, display_name, supported_sounds
from .stores import JsonAlarmStore, JsonSleepHistoryStore

logger = get_logger(__name__)


def build_player(config: WakeEngineConfig) -> AudioPlayer:
    """Wire the resolver and pygame engine from configuration"""
    resolver = SoundResolver.from_settings(config.audio)
    engine = PygamePlaybackEngine(config.audio.cache_dir)
    return AudioPlayer(engine, resolver, play_start_timeout_s=config.audio.play_start_timeout_s)


def build_service(config: WakeEngineConfig) -> AlarmTriggerService:
    """Wire the full alarm trigger service from configuration"""
    player = build_player(config)
    sleep_store = JsonSleepHistoryStore(config.stores.sleep_records_file)
    manager = WakeAlgorithmManager(
        player,
        timings=config.timings,
        sleep_history=sleep_store,
        wake_recorder=sleep_store
    )
    return AlarmTriggerService(
        JsonAlarmStore(config.stores.alarms_file),
        manager,
        player,
        user_id=config.user_id,
        timings=config.timings
    )


async def _wait_then_clear(service: AlarmTriggerService) -> None:
    try:
        await service.join()
    finally:
        service.clear_all_triggers()


@click.group()
@click.option('--log-level', default='INFO', help='Log level')
@click.option('--log-format', default='text', type=click.Choice(['text', 'json']), help='Log format')
@click.option('--log-file', default=None, type=click.Path(dir_okay=False), help='Also write logs to this file')
@click.pass_context
def cli(ctx, log_level, log_format, log_file):
    """Wake Engine CLI - run and test alarm wake algorithms"""
    setup_logging(log_level=log_level, log_format=log_format, log_file=log_file)
    ctx.ensure_object(dict)
    ctx.obj['config'] = WakeEngineConfig.from_env()


@cli.command()
def sounds():
    """List the built-in sounds"""
    for sound_id in supported_sounds():
        click.echo(f"  {sound_id:<16} {display_name(sound_id)}")


@cli.command()
def algorithms():
    """List the wake algorithms"""
    for method in WakeMethod:
        info = get_algorithm_info(method.value)
        click.echo(f"  {info.name:<8} {info.description}")


@cli.command()
@click.argument('sound_id')
@click.option('--volume', '-v', default=80, type=click.IntRange(0, 100), help='Volume level (0-100)')
@click.option('--seconds', '-s', default=5.0, help='How long to keep playing')
@click.pass_context
def play(ctx, sound_id, volume, seconds):
    """Play a single sound"""
    player = build_player(ctx.obj['config'])

    async def _play() -> bool:
        started = await player.play(sound_id, volume)
        if started:
            await asyncio.sleep(seconds)
        player.stop_all()
        return started

    if asyncio.run(_play()):
        click.echo(f"Played {sound_id} at {volume}%")
    else:
        click.echo(f"Playback of {sound_id} did not start")
        sys.exit(1)


@cli.command()
@click.argument('method', type=click.Choice([m.value for m in WakeMethod]))
@click.option('--sound', default='default', help='Sound identifier')
@click.option('--minutes', '-m', default=0.1, help='Target time, minutes from now')
@click.pass_context
def test(ctx, method, sound, minutes):
    """Run one wake algorithm outside the scheduler"""
    service = build_service(ctx.obj['config'])

    async def _test() -> bool:
        if not service.test_algorithm(method, sound, minutes):
            return False
        click.echo(f"Testing {method} with {sound}, target in {minutes} minutes (Ctrl+C to stop)")
        await _wait_then_clear(service)
        return True

    try:
        ok = asyncio.run(_test())
    except KeyboardInterrupt:
        click.echo("Stopped")
        return
    if not ok:
        click.echo("Algorithm test failed to start")
        sys.exit(1)


@cli.command()
@click.argument('alarm_id')
@click.pass_context
def trigger(ctx, alarm_id):
    """Trigger a stored alarm immediately"""
    service = build_service(ctx.obj['config'])

    async def _trigger() -> bool:
        if not await service.trigger_alarm_by_id(alarm_id):
            return False
        click.echo(f"Triggered {alarm_id} (Ctrl+C to stop)")
        await _wait_then_clear(service)
        status = service.get_alarm_trigger_status(alarm_id)
        return status is None or status.error is None

    try:
        ok = asyncio.run(_trigger())
    except KeyboardInterrupt:
        click.echo("Stopped")
        return
    if not ok:
        click.echo(f"Alarm {alarm_id} could not be triggered")
        sys.exit(1)


@cli.command()
@click.pass_context
def run(ctx):
    """Run the alarm trigger service until interrupted"""
    config = ctx.obj['config']
    service = build_service(config)

    async def _run() -> None:
        service.start()
        try:
            await asyncio.Event().wait()
        finally:
            service.stop()
            service.clear_all_triggers()

    click.echo(f"Watching alarms in {config.stores.alarms_file} for user {config.user_id}")
    try:
        asyncio.run(_run())
    except KeyboardInterrupt:
        click.echo("Alarm trigger service stopped")


@cli.command()
@click.pass_context
def status(ctx):
    """Show configuration"""
    config = ctx.obj['config']

    click.echo("Wake Engine Status:")
    click.echo(f"  User: {config.user_id}")
    click.echo(f"  Log level: {config.log_level}")
    click.echo(f"  Alarms file: {config.stores.alarms_file}")
    click.echo(f"  Sleep records file: {config.stores.sleep_records_file}")
    click.echo(f"  Sound assets: {config.audio.assets_dir}")
    click.echo(f"  Remote sounds: {config.audio.remote_base_url or 'disabled'}")
    click.echo(f"  Tick period: {config.timings.tick_period_s:.0f}s")


if __name__ == '__main__':
    cli()
