from .errors import (
    ErrorKind,
    SVMError,
    ValidationError,
    InvalidSvmTypeError,
    InvalidKernelTypeError,
    NegativeGammaError,
    InvalidDegreeError,
    InvalidCostError,
    InvalidNuError,
    InfeasibleNuError,
    InvalidEpsilonError,
    InvalidToleranceError,
    InvalidCacheSizeError,
    WeightLengthMismatchError,
    UnsupportedProbabilityError,
    EmptyProblemError,
    SingleClassError,
    InvalidLabelError,
    InvalidParameterError,
    InvalidProblemError,
    SerializationError,
    ProbabilityModelError,
    NotFittedError,
    ConvergenceWarning,
)

from .parameter import (
    SvmType,
    KernelType,
    KernelSpec,
    SVMParameter,
    make_parameter,
    parameter_from_kernel,
    check_parameter,
)

from .problem import SVMProblem, make_problem, read_problem
from .kernel import k_function
from .solver import SolverState, SolverReport
from .model import ModelKind, SVMModel

from .svm import (
    train,
    predict,
    predict_values,
    predict_probability,
    cross_validation,
    get_svr_probability,
    serialize,
    deserialize,
    save_model,
    load_model,
)

from .estimator import SupportVectorMachine

__all__ = [
    # Errors
    "ErrorKind",
    "SVMError",
    "ValidationError",
    "InvalidSvmTypeError",
    "InvalidKernelTypeError",
    "NegativeGammaError",
    "InvalidDegreeError",
    "InvalidCostError",
    "InvalidNuError",
    "InfeasibleNuError",
    "InvalidEpsilonError",
    "InvalidToleranceError",
    "InvalidCacheSizeError",
    "WeightLengthMismatchError",
    "UnsupportedProbabilityError",
    "EmptyProblemError",
    "SingleClassError",
    "InvalidLabelError",
    "InvalidParameterError",
    "InvalidProblemError",
    "SerializationError",
    "ProbabilityModelError",
    "NotFittedError",
    "ConvergenceWarning",
    # Parameters
    "SvmType",
    "KernelType",
    "KernelSpec",
    "SVMParameter",
    "make_parameter",
    "parameter_from_kernel",
    "check_parameter",
    # Data
    "SVMProblem",
    "make_problem",
    "read_problem",
    "k_function",
    # Model
    "SolverState",
    "SolverReport",
    "ModelKind",
    "SVMModel",
    # Training and prediction
    "train",
    "predict",
    "predict_values",
    "predict_probability",
    "cross_validation",
    "get_svr_probability",
    # Serialization
    "serialize",
    "deserialize",
    "save_model",
    "load_model",
    # Estimator
    "SupportVectorMachine",
]
