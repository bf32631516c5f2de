import pandas as pd
from tabulate import tabulate
from typing import Optional

from scalper_platform.core.config import Config
from scalper_platform.domain.business_models import BracketState
from scalper_platform.persistence.state_store import BracketStateStore
from scalper_platform.logging.logger_config import get_component_logger

logger = get_component_logger('bot')


def config_table(config: Config) -> pd.DataFrame:
    """Strategy + runtime settings as a two-column table."""
    df = pd.DataFrame(list(config.summary().items()), columns=['setting', 'value'])
    print(tabulate(df, headers='keys', tablefmt='pretty', showindex=False))
    return df


def state_table(state: BracketState) -> pd.DataFrame:
    df = pd.DataFrame([state.to_dict()])
    print(tabulate(df, headers='keys', tablefmt='pretty', showindex=False))
    return df


def show_state(config: Config, store: Optional[BracketStateStore] = None) -> BracketState:
    """Print the persisted bracket state for the configured client."""
    store = store or BracketStateStore(config.state_file)
    state = store.load()
    print(f"State file: {store.path}")
    state_table(state)
    if not state.is_flat:
        logger.info("Persisted state is not flat; reconciliation will verify it at startup")
    return state
