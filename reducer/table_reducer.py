# Table-granularity reduction. Instead of removing statements one by one, this
# reducer removes whole tables: every statement that creates, fills or queries a
# table is rewritten or dropped together, which lets it shed dependent
# statements that statement-level ddmin could only remove as a group.

import logging
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

from core.parser import create_table_names, remove_tables, render_statements
from core.statement import Statement
from .delta_reducer import get_nabla, split_tests

if TYPE_CHECKING:
    from oracles.base_oracle import BaseOracle


class TableReducer:
    """
    Searches for a maximal set of tables that can be removed from a script while
    it stays interesting.
    """
    def __init__(self, oracle: 'BaseOracle', dialect: Optional[str] = None):
        self.oracle = oracle
        self.dialect = dialect
        self.logger = logging.getLogger(self.__class__.__name__)

    def _removal_is_interesting(self, tables: Sequence[str], statements: Sequence[Statement]) -> bool:
        candidate = remove_tables(tables, statements, self.dialect)
        self.logger.debug(f"Trying removal of tables {list(tables)}")
        return self.oracle.check(render_statements(candidate))

    def find_removable(self, table_names: Sequence[str], statements: Sequence[Statement]) -> List[str]:
        """
        Grows a set of tables verified removable.

        Args:
            table_names: Candidate tables, in order of appearance.
            statements: The full parsed script.

        Returns:
            The tables whose joint removal keeps the script interesting.
        """
        base: List[str] = []
        remaining = list(table_names)
        granularity = 2

        while remaining and granularity <= len(remaining):
            progressed = False
            for chunk in split_tests(remaining, granularity):
                trial = base + chunk
                if self._removal_is_interesting(trial, statements):
                    self.logger.info(f"Tables {chunk} are removable")
                    base = trial
                    remaining = get_nabla(remaining, chunk)
                    granularity *= 2
                    progressed = True
                    break

                complement = get_nabla(remaining, chunk)
                if complement and self._removal_is_interesting(base + complement, statements):
                    # the tables of `chunk` are needed, only the complement stays in play
                    self.logger.info(f"Tables {chunk} are needed, narrowing the search to {complement}")
                    remaining = complement
                    granularity *= 2
                    progressed = True
                    break

            if not progressed:
                granularity += 1

        for table in list(remaining):
            trial = base + [table]
            if self._removal_is_interesting(trial, statements):
                self.logger.info(f"Table {table} is removable")
                base = trial

        return base

    def reduce(self, statements: Sequence[Statement]) -> Tuple[List[str], List[Statement]]:
        """Removes every removable table created by the script."""
        table_names = create_table_names(statements)
        self.logger.info(f"Searching removable tables among {len(table_names)} candidates")
        if not table_names:
            return [], list(statements)

        removed = self.find_removable(table_names, statements)
        if not removed:
            return [], list(statements)
        return removed, remove_tables(removed, statements, self.dialect)
