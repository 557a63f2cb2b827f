from tfmodel.cli import app

app(prog_name="tfmodel")
