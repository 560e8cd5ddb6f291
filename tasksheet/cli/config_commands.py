"""Configuration management commands for the CLI."""

from tasksheet.config import TasksheetConfig
from tasksheet.cli.formatting import console, print_error, print_success, print_warning


def config_init_command(args: list[str]) -> int:
    """
    Initialize a default configuration file.

    Usage: config init [--force]
    """
    force = "--force" in args or "-f" in args

    config_path = TasksheetConfig.get_default_path()

    if config_path.exists() and not force:
        print_warning(f"Configuration file already exists: {config_path}")
        console.print("Use --force to overwrite")
        return 1

    try:
        config = TasksheetConfig.create_default(config_path)
    except OSError as e:
        print_error(f"Failed to initialize configuration: {e}")
        return 1

    print_success(f"Configuration initialized at: {config_path}")
    console.print()
    console.print("Default settings:")
    console.print(f"  Auth method: {config.google_sheets.auth_method}")
    console.print(f"  Tab: {config.google_sheets.sheet_name}")
    console.print(f"  Sync interval: {config.sync.interval_seconds:g} seconds")
    console.print()
    console.print(f"Put your OAuth client credentials at {config.google_sheets.credentials_path}")
    console.print("and run [cyan]tasksheet login[/cyan].")

    return 0


def config_show_command(args: list[str]) -> int:
    """
    Show current configuration.

    Usage: config show
    """
    config_path = TasksheetConfig.get_default_path()

    if not config_path.exists():
        print_warning(f"No configuration found at: {config_path}")
        console.print("Run 'tasksheet config init' to create a default configuration.")
        return 1

    try:
        config = TasksheetConfig.from_toml(config_path)
    except Exception as e:
        print_error(f"Failed to load configuration: {e}")
        return 1

    google = config.google_sheets
    console.print(f"Configuration: {config_path}")
    console.print()

    console.print("📄 Google Sheets:")
    console.print(f"   Auth method: {google.auth_method}")
    console.print(f"   Credentials: {google.credentials_path}")
    console.print(f"   Token cache: {google.token_path}")
    console.print(f"   Tab: {google.sheet_name}")
    console.print(f"   API key: {'set' if google.resolved_api_key() else 'not set'}")
    console.print(f"   Webhook: {google.resolved_webhook_url() or 'not set'}")
    console.print()

    console.print("🔄 Sync:")
    console.print(f"   Interval: {config.sync.interval_seconds:g} seconds")
    console.print()

    console.print("💾 Storage:")
    console.print(f"   State file: {config.storage.state_path}")
    console.print(f"   User: {config.storage.user_id}")
    console.print()

    console.print("📝 Logging:")
    console.print(f"   Level: {config.logging.level}")
    console.print(f"   Log file: {config.logging.log_file or 'none'}")

    return 0


def config_path_command(args: list[str]) -> int:
    """
    Show the configuration file path.

    Usage: config path
    """
    console.print(str(TasksheetConfig.get_default_path()))
    return 0


def config_validate_command(args: list[str]) -> int:
    """
    Validate the current configuration file.

    Usage: config validate
    """
    config_path = TasksheetConfig.get_default_path()

    if not config_path.exists():
        print_warning(f"No configuration found at: {config_path}")
        return 1

    console.print(f"Validating: {config_path}")

    try:
        config = TasksheetConfig.from_toml(config_path)
    except Exception as e:
        print_error(f"Configuration is invalid: {e}")
        return 1

    google = config.google_sheets
    print_success("Configuration is valid")
    console.print()
    console.print("Summary:")
    console.print(f"  • Auth method: {google.auth_method}")
    console.print(f"  • Credentials file present: {'yes' if google.credentials_path.exists() else 'no'}")
    console.print(f"  • Token cached: {'yes' if google.token_path.exists() else 'no'}")
    console.print(f"  • Read-only API key: {'yes' if google.resolved_api_key() else 'no'}")
    console.print(f"  • Write webhook: {'yes' if google.resolved_webhook_url() else 'no'}")

    return 0


def config_command(args: list[str]) -> int:
    """
    Configuration management command dispatcher.

    Usage: config <subcommand>

    Subcommands:
      init      Initialize a default configuration file
      show      Display current configuration
      path      Show configuration file path
      validate  Validate configuration file
    """
    if not args:
        console.print("Usage: config <subcommand>")
        console.print()
        console.print("Subcommands:")
        console.print("  init      Initialize a default configuration file")
        console.print("  show      Display current configuration")
        console.print("  path      Show configuration file path")
        console.print("  validate  Validate configuration file")
        return 1

    subcommand = args[0]
    subargs = args[1:]

    subcommands = {
        "init": config_init_command,
        "show": config_show_command,
        "path": config_path_command,
        "validate": config_validate_command,
    }

    if subcommand not in subcommands:
        print_error(f"Unknown subcommand: {subcommand}")
        console.print("Run 'tasksheet config' to see available subcommands")
        return 1

    return subcommands[subcommand](subargs)
