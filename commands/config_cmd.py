from typing import Optional

import click
import yaml
from rich.markup import escape
from rich.syntax import Syntax

from commands.common import get_config, get_console, get_provider_table, is_verbose, report_error
from core.github.auth import TOKEN_SERVICE, GitHubAuthenticator, token_from_gh_cli
from core.github.client import GitHubClient
from core.llm.providers.openai_compatible import validate_api_key
from core.llm.router import locate_api_key
from utils.credentials import CredentialStore, mask_secret
from utils.errors import NoIdeaError


@click.group("config")
def config_group():
    """
    Inspect the configuration and manage stored credentials.
    """
    pass


@config_group.command("show")
@click.pass_context
def show(ctx):
    """Print the effective configuration (secrets masked)."""
    config = get_config(ctx)
    data = config.model_dump(mode="json")
    if data["llm"].get("api_key"):
        data["llm"]["api_key"] = mask_secret(data["llm"]["api_key"])
    rendered = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    get_console(ctx).print(Syntax(rendered, "yaml", theme="ansi_dark", background_color="default"))


@config_group.command("apikey")
@click.option("--provider", "provider_name", type=str, default=None, help="Provider to store the key for (default: configured provider).")
@click.option("--key", "api_key", type=str, default=None, help="The API key; prompted for when omitted.")
@click.pass_context
def apikey(ctx, provider_name: Optional[str], api_key: Optional[str]):
    """Store an LLM provider API key in the system keyring."""
    config = get_config(ctx)
    console = get_console(ctx)
    provider = get_provider_table(ctx).resolve(provider_name or config.llm.provider)

    if not api_key:
        api_key = click.prompt(f"{provider.display_name} API key", hide_input=True)
    api_key = api_key.strip()

    with console.status(f"Validating key with {provider.display_name}..."):
        valid = validate_api_key(provider, api_key, config.llm.base_url)
    if valid is False:
        console.print(f"[bold red]❌ The key was rejected by {provider.display_name}, not saving it.[/bold red]")
        return
    if valid is None:
        console.print("[yellow]Could not reach the provider to validate the key, saving it anyway.[/yellow]")

    try:
        CredentialStore().store(provider.keyring_service, api_key)
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return
    console.print(f"[bold green]✅ API key for {provider.display_name} saved to the keyring.[/bold green]")


@config_group.command("apikey-status")
@click.pass_context
def apikey_status(ctx):
    """Show where the API key comes from and whether it works."""
    config = get_config(ctx)
    console = get_console(ctx)
    provider = get_provider_table(ctx).resolve(config.llm.provider)

    key, source = locate_api_key(config.llm, provider)
    console.print(f"Provider: [cyan]{provider.display_name}[/cyan]")
    console.print(f"AI enabled: [cyan]{'yes' if config.llm.enabled else 'no'}[/cyan]")
    if not key:
        console.print("[yellow]No API key found.[/yellow] Run '[cyan]noidea config apikey[/cyan]' to configure one.")
        return

    console.print(f"Key: [cyan]{mask_secret(key)}[/cyan] (from {escape(source)})")
    with console.status("Validating..."):
        valid = validate_api_key(provider, key, config.llm.base_url)
    if valid is None:
        console.print("Status: [yellow]could not reach the provider[/yellow]")
    elif valid:
        console.print("Status: [green]valid[/green]")
    else:
        console.print("Status: [red]invalid[/red]")


@config_group.command("github-auth")
@click.option("--token", type=str, default=None, help="Personal access token; prompted for when omitted.")
@click.option("--from-gh", is_flag=True, help="Import the token of a GitHub CLI session.")
@click.pass_context
def github_auth(ctx, token: Optional[str], from_gh: bool):
    """Store a GitHub token in the system keyring."""
    config = get_config(ctx)
    console = get_console(ctx)
    try:
        if from_gh:
            token = token_from_gh_cli()
        elif not token:
            token = click.prompt("GitHub personal access token", hide_input=True)
        token = token.strip()

        with console.status("Validating token with GitHub..."), \
                GitHubClient(token=token, api_url=config.github.api_url, timeout_sec=config.github.timeout_sec) as client:
            login = client.get_authenticated_user()
        GitHubAuthenticator(env_var=config.github.token_env_var).set_token(token)
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return
    console.print(f"[bold green]✅ Authenticated as {escape(login)}.[/bold green] Token saved to the keyring.")


@config_group.command("github-auth-status")
@click.pass_context
def github_auth_status(ctx):
    """Show the GitHub authentication state."""
    config = get_config(ctx)
    console = get_console(ctx)
    auth = GitHubAuthenticator(env_var=config.github.token_env_var)
    token = auth.get_token()
    if not token:
        console.print("[yellow]Not authenticated with GitHub.[/yellow] Run '[cyan]noidea config github-auth[/cyan]'.")
        return

    source = config.github.token_env_var if auth.token_source() == "environment" else f"keyring ({TOKEN_SERVICE})"
    console.print(f"Token: [cyan]{mask_secret(token)}[/cyan] (from {escape(source)})")
    try:
        with GitHubClient(token=token, api_url=config.github.api_url, timeout_sec=config.github.timeout_sec) as client:
            login = client.get_authenticated_user()
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return
    console.print(f"[green]✓ Authenticated as {escape(login)}[/green]")


@config_group.command("github-logout")
@click.pass_context
def github_logout(ctx):
    """Remove the stored GitHub token."""
    config = get_config(ctx)
    console = get_console(ctx)
    auth = GitHubAuthenticator(env_var=config.github.token_env_var)
    try:
        auth.delete_token()
    except NoIdeaError as e:
        report_error(console, e, is_verbose(ctx))
        return
    console.print("[green]GitHub token removed from the keyring.[/green]")
    if auth.token_source() == "environment":
        console.print(f"[yellow]{config.github.token_env_var} is still set in your environment.[/yellow]")
