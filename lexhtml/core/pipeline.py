"""
The main conversion pipeline (Facade).

This module orchestrates the entire conversion process, using the other
core modules to perform specific tasks.
"""
import json
import logging
from pathlib import Path
from typing import Mapping, NamedTuple

from ..utils.config import ConversionConfig
from ..utils.structures import Bundle, ConversionResult, FileReport
from .assembler import DocumentAssembler
from .converter import LexicalToHtmlConverter


log = logging.getLogger("lexhtml")


class RenderedDocument(NamedTuple):
    bundle: Bundle
    result: ConversionResult


class ConversionPipeline:
    """
    A facade that simplifies the conversion process.

    The CLI (or a library caller) interacts with this class to run a conversion.
    It coordinates the node converter and the document assembler.
    """

    def __init__(self, config: ConversionConfig | None = None):
        """Initializes the pipeline with a specific configuration."""
        self.config = config or ConversionConfig()
        self.converter = LexicalToHtmlConverter(self.config)
        self.assembler = DocumentAssembler(self.config)


    def render(self, document: Mapping) -> RenderedDocument:
        """Converts an already parsed document and assembles the output in memory."""
        result = self.converter.convert(document)
        bundle = self.assembler.bundle(result.html)
        return RenderedDocument(bundle=bundle, result=result)


    def output_path_for(self, source_path: Path) -> Path:
        """`output_path` may name a folder or the output file itself."""
        target = self.config.output_path
        if not target:
            return source_path.with_suffix('.html')
        target = Path(target)
        if target.is_dir() or not target.suffix:
            return target / f"{source_path.stem}.html"
        return target


    def convert(self, source_path: Path) -> Path:
        """Converts a single file and returns the path of the written HTML."""
        return self.convert_file(source_path).output


    def convert_file(self, source_path: Path) -> FileReport:
        """
        Executes the full JSON to HTML conversion for a single file.
        Returns where the output went together with the node count and diagnostics.
        """
        # 1. Read the serialized editor state
        with open(source_path, 'r', encoding='utf-8') as f:
            document = json.load(f)

        # 2. Convert nodes and assemble the output
        rendered = self.render(document)

        # 3. Write to disk
        destination = self.output_path_for(source_path)
        destination.parent.mkdir(parents=True, exist_ok=True)
        destination.write_text(rendered.bundle.output, encoding='utf-8')

        log.info(
            f"Wrote {destination} ({rendered.result.node_count} nodes, "
            f"{len(rendered.result.errors)} diagnostics)"
        )
        return FileReport(
            output=destination,
            node_count=rendered.result.node_count,
            errors=list(rendered.result.errors),
        )
