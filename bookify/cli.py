"""Command-line interface for bookify."""

import argparse
import logging
import shutil
import sys
import threading
import uuid
from pathlib import Path

from bookify import __version__, config
from bookify.models import JobState


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        prog="bookify",
        description="Converti un sito di documentazione in un unico PDF",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    parser.add_argument(
        "url",
        help="URL iniziale del sito di documentazione",
    )
    parser.add_argument(
        "output_file",
        nargs="?",
        help="File PDF di output (default: nome generato dal titolo, nella directory corrente)",
    )
    parser.add_argument(
        "-t", "--title",
        default=None,
        help="Titolo del libro, usato per il nome del file",
    )
    parser.add_argument(
        "--max-pages",
        type=int,
        default=config.MAX_PAGES,
        help=f"Numero massimo di pagine da scoprire (default: {config.MAX_PAGES})",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=config.MAX_DEPTH,
        help=f"Profondità massima del crawl (default: {config.MAX_DEPTH})",
    )
    parser.add_argument(
        "-w", "--work-dir",
        default=None,
        help="Directory per i file intermedi (default: directory temporanea di sistema)",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Abilita log dettagliati",
    )

    args = parser.parse_args(argv)

    # Configure logging
    level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    if args.max_pages < 1:
        parser.error("--max-pages deve essere almeno 1")
    if args.max_depth < 0:
        parser.error("--max-depth non può essere negativo")

    from bookify.discovery import LinkDiscoverer
    from bookify.generator import BookGenerator
    from bookify.net import HttpFetcher, SystemDnsResolver
    from bookify.progress import ProgressReporter
    from bookify.render.playwright_renderer import PlaywrightRenderer
    from bookify.validator import UrlValidator

    work_root = Path(args.work_dir) if args.work_dir else config.TEMP_ROOT
    job_id = uuid.uuid4().hex[:12]

    fetcher = HttpFetcher()
    renderer = PlaywrightRenderer()
    generator = BookGenerator(
        validator=UrlValidator(SystemDnsResolver(), fetcher),
        discoverer=LinkDiscoverer(fetcher, args.max_pages, args.max_depth),
        renderer=renderer,
        fetcher=fetcher,
        temp_root=work_root,
    )

    progress = ProgressReporter()
    cancel_event = threading.Event()

    try:
        status = generator.generate(
            args.url,
            args.title,
            job_id,
            on_progress=progress.update,
            cancel_event=cancel_event,
        )
    except KeyboardInterrupt:
        cancel_event.set()
        print("\n\nConversione interrotta.")
        print(f"Le pagine già renderizzate sono in: {generator.job_dir(job_id)}")
        sys.exit(1)
    finally:
        progress.close()
        renderer.close()

    if status.state != JobState.COMPLETED:
        logging.error("Errore: %s", status.error_message)
        sys.exit(1)

    if status.error_message:
        logging.warning("Completato con errori: %s", status.error_message)

    source = Path(status.output_file_path)
    output_path = Path(args.output_file) if args.output_file else Path.cwd() / source.name
    output_path.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(source, output_path)

    print(f"\nPDF creato: {output_path} ({status.pages_rendered}/{status.pages_total} pagine)")


if __name__ == "__main__":
    main()
