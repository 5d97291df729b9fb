import typer

import aurmgr.cmd.pkg
import aurmgr.cmd.state

app = typer.Typer()
app.add_typer(aurmgr.cmd.state.state_app, name="state", help="Save and restore package states")
_ = app.command()(aurmgr.cmd.pkg.install)
_ = app.command()(aurmgr.cmd.pkg.upgrade)
_ = app.command()(aurmgr.cmd.pkg.info)
_ = app.command()(aurmgr.cmd.pkg.search)


def main():
    app()
