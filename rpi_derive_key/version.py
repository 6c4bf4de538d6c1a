"""rpi-derive-key Meta information.
   rpi-derive-key derives device-specific keys from a secret stored once
   in the one-time-programmable memory of a Raspberry Pi.
"""
__title__ = 'rpi_derive_key'
__description__ = (
   'Derive reproducible, device-specific keys from a secret '
   'stored in Raspberry Pi OTP memory.'
)
__version__ = '0.2.0'
__copyright__ = 'Copyright (c) 2023 rpi-derive-key contributors'
__author__ = 'rpi-derive-key contributors'
__license__ = 'Apache-2.0'
