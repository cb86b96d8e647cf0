"""Block capture CLI entrypoint.

    python -m wsaclient.core --host 192.168.1.100 --freq 2400 --spp 1024 --ppb 4
"""

import argparse
import logging
import sys

import numpy as np

from .client import WSA
from .common import log
from .config import SessionConfig
from .errors import WSAError


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="WSA block capture")
    parser.add_argument("--host", required=True, help="WSA IP address or host name")
    parser.add_argument("--freq", default=2400.0, type=float, help="Center freq MHz")
    parser.add_argument("--spp", default=1024, type=int, help="Samples per packet")
    parser.add_argument("--ppb", default=1, type=int, help="Packets per block")
    parser.add_argument("--decimation", default=0, type=int, help="Decimation rate (0 = off)")
    parser.add_argument("--rfe", default="RFE0560", help="RFE variant when *IDN? is unavailable")
    parser.add_argument("--command-file", default=None, help="SCPI command file to send after connecting")
    parser.add_argument("--out", default=None, help="Save captured I/Q to this .npy file")
    parser.add_argument("--debug", action="store_true", help="Log every command and reply")
    return parser


def run(args) -> int:
    config = SessionConfig(rfe_name=args.rfe, debug=args.debug)

    with WSA(config) as wsa:
        descr = wsa.open(f"TCPIP::{args.host}")
        log.info(f"{descr.prod_name} {descr.rfe_name} firmware {descr.fw_version or 'n/a'}")

        if args.command_file:
            count = wsa.send_command_file(args.command_file)
            log.info(f"Sent {count} lines from {args.command_file}")

        wsa.set_freq(int(args.freq * 1e6))
        wsa.set_decimation(args.decimation)
        wsa.set_samples_per_packet(args.spp)
        wsa.set_packets_per_block(args.ppb)

        wsa.capture_block()
        i_data, q_data = wsa.read_block(args.ppb, args.spp)

        log.info(f"Captured {i_data.size} samples at {wsa.get_freq() / 1e6:.3f} MHz, "
                 f"{wsa.missed_count} packets missed")
        log.info(f"I range [{i_data.min()}, {i_data.max()}]  Q range [{q_data.min()}, {q_data.max()}]")

        if args.out:
            np.save(args.out, np.stack([i_data, q_data]))
            log.info(f"Saved I/Q to {args.out}")
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(message)s')
    try:
        return run(args)
    except KeyboardInterrupt:
        log.info("Interrupted")
        return 130
    except WSAError as e:
        log.error(f"{type(e).__name__}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
