from .tax import (
    FilingStatus,
    PayFrequency,
    PayrollTaxRequest,
    PayrollTaxResult,
    TaxRatesResponse,
)
from .compliance import (
    ComplianceRequirement,
    ComplianceStatus,
    ComplianceStatusResult,
    UpcomingDeadline,
)
from .expense import (
    CategorizationResult,
    CategorizeRequest,
    CustomCategoryRequest,
    CustomCategoryResult,
    ExpenseCategory,
)
from .data import DataSource, ForecastResult, VarianceAnalysis
from .research import ResearchResult, SearchResult, TopicUpdate
