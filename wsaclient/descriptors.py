"""Static capability tables for supported WSA product/RFE variants."""

import dataclasses

from .errors import UnknownDeviceError
from .models import DeviceDescriptor, DeviceVariant, Gain

MHZ = 1_000_000

WSA4000_INST_BW             = 125 * MHZ
WSA4000_MAX_SAMPLE_SIZE     = 2560 * 1024
WSA4000_MIN_SAMPLES_PER_PACKET = 128
WSA4000_MAX_SAMPLES_PER_PACKET = 65520
WSA4000_MIN_PACKETS_PER_BLOCK  = 1
WSA4000_MAX_PACKETS_PER_BLOCK  = WSA4000_MAX_SAMPLE_SIZE // WSA4000_MIN_SAMPLES_PER_PACKET

_ABS_MAX_AMP = {
    Gain.HIGH: -15.0,
    Gain.MED:    0.0,
    Gain.LOW:   13.0,
    Gain.VLOW:  20.0,
}

_WSA4000 = dict(
    prod_name="WSA4000",
    inst_bw=WSA4000_INST_BW,
    min_decimation=16,
    max_decimation=1023,
    min_samples_per_packet=WSA4000_MIN_SAMPLES_PER_PACKET,
    max_samples_per_packet=WSA4000_MAX_SAMPLES_PER_PACKET,
    min_packets_per_block=WSA4000_MIN_PACKETS_PER_BLOCK,
    max_packets_per_block=WSA4000_MAX_PACKETS_PER_BLOCK,
    max_sample_size=WSA4000_MAX_SAMPLE_SIZE,
    abs_max_amp=_ABS_MAX_AMP,
)

DESCRIPTORS = {
    DeviceVariant.WSA4000_RFE0440: DeviceDescriptor(
        rfe_name="RFE0440",
        min_tune_freq=200 * MHZ,
        max_tune_freq=4000 * MHZ,
        freq_resolution=10_000,
        min_if_gain=0,
        max_if_gain=0,
        max_ant_port=1,
        rfe_control=False,
        **_WSA4000,
    ),
    DeviceVariant.WSA4000_RFE0560: DeviceDescriptor(
        rfe_name="RFE0560",
        min_tune_freq=100_000,
        max_tune_freq=11000 * MHZ,
        freq_resolution=100_000,
        min_if_gain=-10,
        max_if_gain=34,
        max_ant_port=2,
        **_WSA4000,
    ),
}


def find_variant(product: str, rfe: str) -> DeviceVariant:
    key = (product.strip().upper(), rfe.strip().upper())
    for variant in DeviceVariant:
        if variant.value == key:
            return variant
    raise UnknownDeviceError(f"No descriptor for product={product!r} rfe={rfe!r}")


def lookup_descriptor(variant: DeviceVariant, **identity) -> DeviceDescriptor:
    """
    Return the descriptor for a variant, with identity strings (serial,
    firmware version, ...) filled in from what the instrument reported.
    """
    try:
        descr = DESCRIPTORS[variant]
    except KeyError:
        raise UnknownDeviceError(f"No descriptor for {variant}") from None
    if identity:
        descr = dataclasses.replace(descr, **identity)
    return descr
