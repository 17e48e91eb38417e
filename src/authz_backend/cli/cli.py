import click

from .permissions import check, effective, invalidate

@click.group()
def cli():
    pass

cli.add_command(check,"check")
cli.add_command(effective,"effective")
cli.add_command(invalidate,"invalidate")

if __name__ == '__main__':
    cli()
