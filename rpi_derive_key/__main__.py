from rpi_derive_key.cli import app

app(prog_name="rpi-derive-key")
