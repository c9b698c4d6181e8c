# Copyright (c) 2025-2026 Gowtham Adamane Rao. All Rights Reserved.
#
# Licensed under the Prosperity Public License 3.0.0 (the "License").
# You may not use this file except in compliance with the License.
# You may obtain a copy of the License in the LICENSE file at the root
# of this repository, or at: https://prosperitylicense.com/versions/3.0.0
#
# Commercial use beyond a 30-day trial requires a separate license.
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal, Optional

class Settings(BaseSettings):
    """
    Manages the application's configuration settings.
    Utilizes Pydantic's BaseSettings to allow for environment variable overrides.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="PYPEDIGREECORE_"
    )

    # --- Code Systems ---
    disorder_system: str = Field(
        "http://www.omim.org",
        description="Code system used for disorders in conditions."
    )
    phenotype_system: str = Field(
        "http://purl.obolibrary.org/obo/hp.owl",
        description="Code system used for phenotype (HPO) observations."
    )
    gene_system: str = Field(
        "http://www.genenames.org",
        description="Code system used for candidate gene observations."
    )

    # --- Import & Export Behavior ---
    default_privacy: Literal["all", "nopersonal", "minimal"] = Field(
        default="all",
        description="Privacy policy applied on export when none is given. 'nopersonal' drops names and dates, 'minimal' also drops comments."
    )
    consanguinity_depth: int = Field(
        default=3,
        description="Number of generations searched for a shared ancestor when deciding consanguinity."
    )
    bad_node_policy: Literal["drop", "raise"] = Field(
        default="drop",
        description="What to do with questionnaire records that cannot be placed in the pedigree."
    )

    # --- Terminology Server ---
    terminology_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of a FHIR terminology server used to resolve code displays. Codes are used as displays when unset."
    )
    terminology_timeout: float = Field(
        default=10,
        description="Timeout in seconds for terminology server requests."
    )
    terminology_search_count: int = Field(
        default=20,
        description="Maximum number of matches requested from ValueSet/$expand searches."
    )
    gene_lookup_url: Optional[str] = Field(
        default=None,
        description="Clinical Table Search Service endpoint used for gene displays and searches, e.g. https://clinicaltables.nlm.nih.gov/api/genes/v4/search."
    )
    gene_lookup_value_column: str = Field(
        default="symbol",
        description="Clinical Table Search Service column holding the gene code."
    )
    gene_lookup_text_column: str = Field(
        default="name",
        description="Clinical Table Search Service column holding the gene display."
    )


# Instantiate a global settings object to be used throughout the application
settings = Settings()
