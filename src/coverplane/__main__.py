from coverplane.cli.main import cli

cli()
