"""Command-line interface for socialgraph."""

import asyncio
from datetime import timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from socialgraph import SocialClient, SocialConfig, save_json, __version__
from socialgraph.config import StoreBackend
from socialgraph.core.discovery import format_last_seen, is_online
from socialgraph.core.normalizer import format_user_id
from socialgraph.exceptions import SocialGraphError
from socialgraph.models.edge import FollowDirection
from socialgraph.models.profile import UserProfile

app = typer.Typer(
    name="socialgraph",
    help="Follow graph and presence tools",
    add_completion=False,
)
console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"socialgraph version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
):
    """socialgraph - follow graph and presence tools."""
    pass


def _config(db: Optional[Path]) -> SocialConfig:
    config = SocialConfig()
    if db is not None:
        config = config.model_copy(
            update={"store_backend": StoreBackend.SQLITE, "sqlite_path": str(db)}
        )
    return config


def _window(config: SocialConfig) -> timedelta:
    return timedelta(seconds=config.online_window_seconds)


def _run(config: SocialConfig, action):
    """Run an async action against an open client, reporting domain errors."""

    async def run():
        async with SocialClient(config) as client:
            return await action(client)

    try:
        return asyncio.run(run())
    except SocialGraphError as exc:
        console.print(f"[red]✗[/red] {exc}")
        raise typer.Exit(1)


DbOption = typer.Option(None, "--db", help="SQLite store path (overrides configured backend)")


@app.command()
def register(
    uid: str = typer.Argument(..., help="User id"),
    email: Optional[str] = typer.Option(None, "--email", "-e"),
    username: Optional[str] = typer.Option(None, "--username", "-u"),
    db: Optional[Path] = DbOption,
):
    """Create a profile for a new account."""

    async def action(client: SocialClient):
        return await client.graph.create_profile(uid, email=email, username=username)

    profile = _run(_config(db), action)
    console.print(f"[green]✓[/green] Created profile {profile.uid} ({profile.display_name})")


@app.command()
def follow(
    actor: str = typer.Argument(..., help="Follower id"),
    target: str = typer.Argument(..., help="Followed id"),
    db: Optional[Path] = DbOption,
):
    """Make ACTOR follow TARGET."""

    async def action(client: SocialClient):
        return await client.graph.follow(actor, target)

    if _run(_config(db), action):
        console.print(f"[green]✓[/green] {actor} now follows {target}")
    else:
        console.print(f"[dim]{actor} already follows {target}[/dim]")


@app.command()
def unfollow(
    actor: str = typer.Argument(..., help="Follower id"),
    target: str = typer.Argument(..., help="Followed id"),
    db: Optional[Path] = DbOption,
):
    """Make ACTOR stop following TARGET."""

    async def action(client: SocialClient):
        return await client.graph.unfollow(actor, target)

    if _run(_config(db), action):
        console.print(f"[green]✓[/green] {actor} no longer follows {target}")
    else:
        console.print(f"[dim]{actor} was not following {target}[/dim]")


@app.command()
def profile(
    uid: str = typer.Argument(..., help="User id"),
    db: Optional[Path] = DbOption,
):
    """Show a single profile."""

    async def action(client: SocialClient):
        return await client.graph.fetch_profile(uid)

    config = _config(db)
    result = _run(config, action)
    if result is None:
        console.print(f"[red]Profile not found: {uid}[/red]")
        raise typer.Exit(1)
    _print_profile_table(result, _window(config))


@app.command()
def edges(
    uid: str = typer.Argument(..., help="User id"),
    direction: FollowDirection = typer.Option(
        FollowDirection.FOLLOWING, "--direction", "-d", help="following or followers"
    ),
    db: Optional[Path] = DbOption,
):
    """List who UID follows, or who follows UID."""

    async def action(client: SocialClient):
        sub = await client.graph.subscribe_to_follow_list(uid, direction)
        try:
            return await anext(sub)
        finally:
            sub.cancel()

    config = _config(db)
    profiles = _run(config, action)
    _print_profiles(f"{direction.value.capitalize()} of {uid}", profiles, _window(config))


@app.command()
def feed(
    viewer: str = typer.Argument(..., help="Viewing user id"),
    limit: int = typer.Option(20, "--limit", "-n", help="Maximum rows"),
    db: Optional[Path] = DbOption,
):
    """Show the ranked discovery feed for VIEWER."""

    async def action(client: SocialClient):
        return await client.graph.discovery_feed(viewer)

    config = _config(db)
    profiles = _run(config, action)
    _print_profiles(f"Discover ({viewer})", profiles[:limit], _window(config))


@app.command()
def reconcile(
    uid: str = typer.Argument(..., help="User id"),
    db: Optional[Path] = DbOption,
):
    """Recompute UID's follower/following counters from its edges."""

    async def action(client: SocialClient):
        return await client.graph.reconcile_counters(uid)

    result = _run(_config(db), action)
    console.print(
        f"[green]✓[/green] {uid}: {result.followers_count:,} followers · "
        f"{result.following_count:,} following"
    )


@app.command()
def export(
    output: Path = typer.Argument(..., help="Output JSON file"),
    db: Optional[Path] = DbOption,
):
    """Export every profile to a JSON file."""

    async def action(client: SocialClient):
        return await client.graph.list_profiles()

    profiles = _run(_config(db), action)
    path = save_json(profiles, output)
    console.print(f"[dim]Saved {len(profiles)} profiles to {path}[/dim]")


def _print_profiles(title: str, profiles: list[UserProfile], window: timedelta):
    """Print profiles as a summary table."""
    if not profiles:
        console.print(f"[dim]{title}: nobody yet[/dim]")
        return

    table = Table(title=title)
    table.add_column("User")
    table.add_column("ID", style="dim")
    table.add_column("Followers", justify="right")
    table.add_column("Presence")

    for p in profiles:
        presence = format_last_seen(p, window=window)
        if is_online(p, window=window):
            presence = f"[green]{presence}[/green]"
        table.add_row(p.display_name, format_user_id(p.uid), f"{p.followers_count:,}", presence)

    console.print(table)


def _print_profile_table(p: UserProfile, window: timedelta):
    """Print detailed profile as table."""
    table = Table(title=p.display_name, show_header=False)
    table.add_column("Field", style="dim")
    table.add_column("Value")

    table.add_row("UID", p.uid)
    table.add_row("ID", format_user_id(p.uid))
    table.add_row("Username", p.username)
    table.add_row("Email", p.email or "-")
    table.add_row("Bio", p.bio or "-")
    table.add_row("Gender", p.gender or "-")
    table.add_row("Star sign", p.star_sign or "-")
    table.add_row("Age", str(p.age) if p.age is not None else "-")
    table.add_row("Location", p.location or "-")
    table.add_row("Hobbies", ", ".join(p.hobbies) if p.hobbies else "-")
    table.add_row("Followers", f"{p.followers_count:,}")
    table.add_row("Following", f"{p.following_count:,}")
    table.add_row("Presence", format_last_seen(p, window=window))

    console.print(table)


if __name__ == "__main__":
    app()
