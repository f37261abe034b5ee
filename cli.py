#!/usr/bin/env python3
"""
Dead Drop CLI — Password-gated files hidden in images.

Usage:
    cli.py hide --file secret.pdf --password pw [--cover photo.png] [--bits 2] --output drop.png
    cli.py reveal --image drop.png --password pw [--bits 2] [--output secret.pdf]
    cli.py capacity --image photo.png
    cli.py serve [--host 0.0.0.0] [--port 8787]

Author: Ava Shakil
Date: 2026-10-17
"""

import argparse
import getpass
import os
import sys

from dead_drop import capacity, crypto, stego
from dead_drop.config import Settings, configure_logging
from dead_drop.errors import DeadDropError


def _password(args, confirm: bool = False) -> str:
    if args.password:
        return args.password
    pw = getpass.getpass('Password: ')
    if confirm and getpass.getpass('Confirm password: ') != pw:
        raise ValueError("Passwords do not match")
    return pw


def cmd_hide(args, settings: Settings):
    """Encrypt a file and hide it inside a PNG."""
    if args.message:
        payload = args.message.encode('utf-8')
    elif args.file:
        if not os.path.exists(args.file):
            print(f"Error: file not found: {args.file}", file=sys.stderr)
            return 1
        with open(args.file, 'rb') as f:
            payload = f.read()
    else:
        payload = sys.stdin.buffer.read()

    if not payload:
        print("Error: empty payload", file=sys.stderr)
        return 1

    bits = args.bits or settings.bits_per_channel
    password = _password(args, confirm=True)
    envelope_size = len(payload) + crypto.ENVELOPE_OVERHEAD

    if args.cover:
        with open(args.cover, 'rb') as f:
            cover = f.read()
        width, height, fmt = stego.inspect(cover)
        print(f"Cover image: {width}x{height} {fmt}")
    else:
        width, height = capacity.choose_dimensions(envelope_size, bits)
        cover = stego.generate_cover_image(width, height)
        print(f"Generated {width}x{height} cover image")

    check = capacity.validate(width, height, envelope_size, bits)
    if not check['valid']:
        print(f"Error: payload needs {check['required']} bytes, "
              f"cover holds {check['capacity']} at {bits} bit(s)/channel", file=sys.stderr)
        return 1

    envelope = crypto.encrypt(payload, password, iterations=settings.kdf_iterations)
    image = stego.embed(cover, envelope.to_bytes(), bits)

    with open(args.output, 'wb') as f:
        f.write(image)

    print(f"Hidden {len(payload)} bytes in {args.output} "
          f"({capacity.utilization(envelope_size, check['capacity'])} of capacity, "
          f"{bits} bit(s)/channel)")
    print("Reveal with the same password and --bits value.")
    return 0


def cmd_reveal(args, settings: Settings):
    """Extract and decrypt a payload from a stego image."""
    if not os.path.exists(args.image):
        print(f"Error: image not found: {args.image}", file=sys.stderr)
        return 1

    with open(args.image, 'rb') as f:
        image = f.read()

    bits = args.bits or settings.bits_per_channel
    password = _password(args)

    try:
        envelope = stego.extract(image, bits)
        plaintext = crypto.decrypt(envelope, password)
    except DeadDropError as e:
        print(f"Reveal FAILED: {e}", file=sys.stderr)
        return 1

    print(f"Reveal successful! Payload: {len(plaintext)} bytes")

    if args.output:
        with open(args.output, 'wb') as f:
            f.write(plaintext)
        print(f"Saved to: {args.output}")
    else:
        try:
            text = plaintext.decode('utf-8')
            print(f"\n--- Payload ---\n{text}\n--- End ---")
        except UnicodeDecodeError:
            print("\n(Binary payload, use --output to save to file)")
            print(f"First 64 bytes hex: {plaintext[:64].hex()}")

    return 0


def cmd_capacity(args, settings: Settings):
    """Report how much a carrier image can hold."""
    with open(args.image, 'rb') as f:
        image = f.read()

    width, height, fmt = stego.inspect(image)
    print(f"Image:     {width}x{height} {fmt}")
    for bits in range(1, 5):
        cap = capacity.compute_capacity(width, height, bits)
        usable = max(0, cap - crypto.ENVELOPE_OVERHEAD)
        print(f"  {bits} bit(s)/channel: {usable} bytes of file ({cap} raw)")
    return 0


def cmd_serve(args, settings: Settings):
    """Run the web API."""
    from web.app import run

    if args.host:
        settings.host = args.host
    if args.port:
        settings.port = args.port
    run(settings)
    return 0


def main():
    parser = argparse.ArgumentParser(
        description='Dead Drop — Password-gated files hidden in images.',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Hide a file in a generated decoy image
  %(prog)s hide --file evidence.pdf --output holiday.png

  # Hide a message in your own photo at 2 bits per channel
  %(prog)s hide --message "Meet at the bridge" --cover photo.png --bits 2 --output photo2.png

  # Get it back
  %(prog)s reveal --image photo2.png --bits 2

  # How much fits?
  %(prog)s capacity --image photo.png
        """
    )
    parser.add_argument('--log-level', help='Logging level (default: from environment)')

    sub = parser.add_subparsers(dest='command', help='Command')

    p_hide = sub.add_parser('hide', help='Encrypt a file and hide it in an image')
    p_hide.add_argument('--message', '-m', help='Text message to hide')
    p_hide.add_argument('--file', '-f', help='File to hide')
    p_hide.add_argument('--cover', '-c', help='Lossless cover image (default: generated)')
    p_hide.add_argument('--password', '-p', help='Password (prompted if omitted)')
    p_hide.add_argument('--bits', '-b', type=int, choices=[1, 2, 3, 4], help='Bits per channel')
    p_hide.add_argument('--output', '-o', required=True, help='Output PNG')

    p_reveal = sub.add_parser('reveal', help='Extract and decrypt a hidden file')
    p_reveal.add_argument('--image', '-i', required=True, help='Stego image')
    p_reveal.add_argument('--password', '-p', help='Password (prompted if omitted)')
    p_reveal.add_argument('--bits', '-b', type=int, choices=[1, 2, 3, 4], help='Bits per channel')
    p_reveal.add_argument('--output', '-o', help='Output file (default: print to stdout)')

    p_capacity = sub.add_parser('capacity', help='Show carrier capacity')
    p_capacity.add_argument('--image', '-i', required=True, help='Cover image')

    p_serve = sub.add_parser('serve', help='Run the web API')
    p_serve.add_argument('--host', help='Bind address')
    p_serve.add_argument('--port', type=int, help='Port')

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        return 1

    settings = Settings.from_env()
    if args.log_level:
        settings.log_level = args.log_level.upper()
    configure_logging(settings.log_level)

    handlers = {
        'hide': cmd_hide,
        'reveal': cmd_reveal,
        'capacity': cmd_capacity,
        'serve': cmd_serve,
    }

    try:
        return handlers[args.command](args, settings)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == '__main__':
    sys.exit(main())
