"""
Catalog of TaxBandits form types.

Each form type is addressed by a path segment (FormType value); every one of
them gets its FormService from the same factory.
"""

from enum import Enum
from typing import Dict

from .client import TaxBanditClient
from .form_service import FormService, create_form_service


class FormType(str, Enum):
    """Supported form-type path segments."""
    W2 = "FormW2"
    W2C = "FormW2C"
    NEC_1099 = "Form1099NEC"
    MISC_1099 = "Form1099MISC"
    INT_1099 = "Form1099INT"
    DIV_1099 = "Form1099DIV"
    K_1099 = "Form1099K"
    R_1099 = "Form1099R"
    B_1099 = "Form1099B"
    MORTGAGE_1098 = "Form1098"
    F941 = "Form941"
    F940 = "Form940"
    F944 = "Form944"
    F943 = "Form943"
    ACA_1095B = "Form1095B"
    ACA_1095C = "Form1095C"

    @property
    def label(self) -> str:
        return FORM_LABELS[self]


FORM_LABELS: Dict[FormType, str] = {
    FormType.W2: "W-2 Wage and Tax Statement",
    FormType.W2C: "W-2c Corrected Wage and Tax Statement",
    FormType.NEC_1099: "1099-NEC Nonemployee Compensation",
    FormType.MISC_1099: "1099-MISC Miscellaneous Information",
    FormType.INT_1099: "1099-INT Interest Income",
    FormType.DIV_1099: "1099-DIV Dividends and Distributions",
    FormType.K_1099: "1099-K Payment Card and Third Party Network Transactions",
    FormType.R_1099: "1099-R Distributions From Pensions, Annuities, Retirement Plans",
    FormType.B_1099: "1099-B Proceeds From Broker Transactions",
    FormType.MORTGAGE_1098: "1098 Mortgage Interest Statement",
    FormType.F941: "941 Employer's Quarterly Federal Tax Return",
    FormType.F940: "940 Employer's Annual FUTA Tax Return",
    FormType.F944: "944 Employer's Annual Federal Tax Return",
    FormType.F943: "943 Employer's Annual Return for Agricultural Employees",
    FormType.ACA_1095B: "1095-B Health Coverage",
    FormType.ACA_1095C: "1095-C Employer-Provided Health Insurance Offer and Coverage",
}

# Path segment -> form type, for routing by path
FORM_PATHS: Dict[str, FormType] = {form.value: form for form in FormType}


def form_type_from_path(path: str) -> FormType:
    """
    Resolve a path segment such as "Form1099NEC" (case-insensitive).

    Raises:
        KeyError: If the path is not a supported form type
    """
    for value, form in FORM_PATHS.items():
        if value.lower() == path.lower():
            return form
    raise KeyError(path)


def build_form_services(client: TaxBanditClient) -> Dict[FormType, FormService]:
    """One FormService per supported form type, all sharing the client."""
    return {form: create_form_service(client, form.value) for form in FormType}
