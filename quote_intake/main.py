#!/usr/bin/env python3
"""
Quote Intake Pipeline
Main orchestrator that wires configuration, logging, extraction and submission
"""

import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple, Union

from quote_intake.utils.config import Config
from quote_intake.utils.logging_utils import setup_logging
from quote_intake.modules.email_parser import EmailParser
from quote_intake.modules.extraction_client import GeminiExtractionClient
from quote_intake.modules.extraction_orchestrator import QuoteExtractor
from quote_intake.modules.intake_session import IntakeSession
from quote_intake.modules.quote_record import QuoteRecord
from quote_intake.modules.submission_client import (
    ApprovedQuote,
    DeclinedQuote,
    QuoteSubmissionClient,
)
from quote_intake.modules.summarizer import EmailSummarizer


class QuoteIntakePipeline:
    """Builds the collaborators for one CLI invocation"""

    def __init__(self, config_file: str = ".env", extraction_client=None):
        """
        Initialize pipeline

        Args:
            config_file: Path to configuration file
            extraction_client: Optional client exposing generate_json (tests)
        """
        self.config = Config(config_file)
        self.logger = setup_logging(
            self.config.system.log_level,
            self.config.system.log_file,
            self.config.system.log_format,
        )
        self.logger.info("Initializing quote intake pipeline")
        self._extraction_client = extraction_client

    def _build_extractor(self) -> QuoteExtractor:
        client = self._extraction_client
        if client is None:
            self.config.validate()
            client = GeminiExtractionClient(
                api_key=self.config.extraction.api_key,
                model=self.config.extraction.model,
                temperature=self.config.extraction.temperature,
            )
        summarizer = EmailSummarizer(client, self.config.extraction.summary_threshold)
        return QuoteExtractor(client, summarizer)

    def new_session(self) -> IntakeSession:
        return IntakeSession(
            self._build_extractor(),
            parser=EmailParser.from_config(self.config.parser),
        )

    def analyze(
        self,
        email_path: Optional[Union[str, Path]] = None,
        pdf_paths: Sequence[Union[str, Path]] = (),
    ) -> Tuple[QuoteRecord, List[str]]:
        """
        Run one analyze action

        Returns:
            The extracted record and the intake warnings shown to the reviewer
        """
        session = self.new_session()
        if email_path:
            path = Path(email_path)
            session.load_email(path.read_bytes(), path.name)
        for pdf_path in pdf_paths:
            session.add_pdf_file(pdf_path)

        record = session.analyze()
        return record, list(session.warnings)

    def submit(
        self,
        record: QuoteRecord,
        environment: Optional[str] = None,
    ) -> Union[ApprovedQuote, DeclinedQuote]:
        """Submit a reviewed record once"""
        submission_config = Config.load_submission_config(environment)
        client = QuoteSubmissionClient(submission_config)
        return client.submit(record)


def main(argv: Optional[List[str]] = None) -> None:
    """Main entry point"""
    from quote_intake.app_runner import AppRunner

    sys.exit(AppRunner(argv).run())


if __name__ == "__main__":
    main()
