"""Contender regressors whose predictions the gating combiner blends."""

import logging
from typing import Any, Optional

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim
from sklearn.base import BaseEstimator, RegressorMixin
from sklearn.ensemble import RandomForestRegressor
from sklearn.linear_model import LinearRegression
from sklearn.preprocessing import StandardScaler
import xgboost as xgb
import lightgbm as lgb

logger = logging.getLogger(__name__)

CONTENDER_KINDS = ("mlp", "linear", "random_forest", "xgboost", "lightgbm")


class ContenderMLP(nn.Module):
    """Single-hidden-layer tanh network with a scalar output.

    Attributes:
        layers: Sequential layers of the network.
    """

    def __init__(self, input_dim: int, n_hidden: int) -> None:
        super().__init__()
        self.layers = nn.Sequential(
            nn.Linear(input_dim, n_hidden),
            nn.Tanh(),
            nn.Linear(n_hidden, 1),
        )

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.layers(x).squeeze(-1)


class MLPContender(BaseEstimator, RegressorMixin):
    """Small neural-network regressor used as a contender model.

    Attributes:
        n_hidden: Number of hidden units.
        learning_rate: Adam learning rate.
        max_iter: Maximum training epochs.
        batch_size: Mini-batch size.
        patience: Epochs without validation improvement before stopping.
        random_state: Random seed for reproducibility.
        device: Computation device (cuda/cpu).
        scaler_: Input scaler fitted on the training data.
        model_: Trained network.
    """

    def __init__(
        self,
        n_hidden: int = 2,
        learning_rate: float = 0.01,
        max_iter: int = 300,
        batch_size: int = 32,
        patience: int = 20,
        random_state: int = 42,
        device: Optional[str] = None,
    ) -> None:
        """Initialize the contender.

        Args:
            n_hidden: Number of hidden units.
            learning_rate: Adam learning rate.
            max_iter: Maximum training epochs.
            batch_size: Mini-batch size.
            patience: Early-stopping patience in epochs.
            random_state: Random seed for reproducibility.
            device: Computation device. Defaults to auto-detect.

        Raises:
            ValueError: If n_hidden < 1.
        """
        if n_hidden < 1:
            raise ValueError(f"n_hidden must be >= 1, got {n_hidden}")
        self.n_hidden = n_hidden
        self.learning_rate = learning_rate
        self.max_iter = max_iter
        self.batch_size = batch_size
        self.patience = patience
        self.random_state = random_state
        self.device = device

    def fit(self, X: np.ndarray, y: np.ndarray) -> "MLPContender":
        """Train the network on (X, y) with mean squared error.

        Args:
            X: Input features of shape (n_samples, n_features).
            y: Targets of shape (n_samples,).

        Returns:
            Self for method chaining.

        Raises:
            ValueError: If X is empty or lengths differ.
            RuntimeError: If training fails.
        """
        X = np.asarray(X, dtype=float)
        # Writable copy for torch.as_tensor
        y = np.array(y, dtype=float).ravel()
        if len(X) == 0:
            raise ValueError("X cannot be empty")
        if len(X) != len(y):
            raise ValueError("X and y must have same length")

        device = self.device or ("cuda" if torch.cuda.is_available() else "cpu")
        torch.manual_seed(self.random_state)
        rng = np.random.RandomState(self.random_state)

        try:
            self.scaler_ = StandardScaler()
            X_scaled = self.scaler_.fit_transform(X)
            self.device_ = device
            self.model_ = ContenderMLP(X_scaled.shape[1], self.n_hidden).to(device)

            X_tensor = torch.as_tensor(X_scaled, dtype=torch.float32, device=device)
            y_tensor = torch.as_tensor(y, dtype=torch.float32, device=device)

            # Hold out a validation slice only when there is enough data for it.
            indices = rng.permutation(len(X))
            n_val = len(X) // 10 if len(X) >= 20 else 0
            val_idx, train_idx = indices[:n_val], indices[n_val:]
            if n_val == 0:
                val_idx = train_idx

            X_train, y_train = X_tensor[train_idx], y_tensor[train_idx]
            X_val, y_val = X_tensor[val_idx], y_tensor[val_idx]

            optimizer = optim.Adam(self.model_.parameters(), lr=self.learning_rate)
            criterion = nn.MSELoss()

            best_val_loss = float("inf")
            best_state = None
            patience_counter = 0

            for epoch in range(self.max_iter):
                self.model_.train()
                order = torch.as_tensor(rng.permutation(len(X_train)), device=device)
                for start in range(0, len(X_train), self.batch_size):
                    batch = order[start : start + self.batch_size]
                    optimizer.zero_grad()
                    loss = criterion(self.model_(X_train[batch]), y_train[batch])
                    loss.backward()
                    optimizer.step()

                self.model_.eval()
                with torch.no_grad():
                    val_loss = criterion(self.model_(X_val), y_val).item()

                if val_loss < best_val_loss:
                    best_val_loss = val_loss
                    best_state = {k: v.clone() for k, v in self.model_.state_dict().items()}
                    patience_counter = 0
                else:
                    patience_counter += 1

                if patience_counter >= self.patience:
                    logger.debug(f"Early stopping at epoch {epoch + 1}")
                    break

            if best_state is not None:
                self.model_.load_state_dict(best_state)
            logger.debug(f"Contender MLP trained, best validation loss {best_val_loss:.4f}")

        except Exception as e:
            logger.error(f"Contender MLP training failed: {e}")
            raise RuntimeError(f"Training failed: {e}") from e

        return self

    def predict(self, X: np.ndarray) -> np.ndarray:
        """Predict targets of shape (n_samples,).

        Raises:
            RuntimeError: If the model has not been fitted.
        """
        if getattr(self, "model_", None) is None:
            raise RuntimeError("Model must be fitted before predict")

        X_scaled = self.scaler_.transform(np.asarray(X, dtype=float))
        X_tensor = torch.as_tensor(X_scaled, dtype=torch.float32, device=self.device_)
        self.model_.eval()
        with torch.no_grad():
            return self.model_(X_tensor).cpu().numpy().astype(float)


def create_contender(kind: str = "mlp", random_state: int = 42, **params: Any) -> Any:
    """Create an unfitted contender regressor.

    Args:
        kind: One of "mlp", "linear", "random_forest", "xgboost", "lightgbm".
        random_state: Random seed for models that take one.
        **params: Overrides for the model's default settings.

    Returns:
        Unfitted scikit-learn compatible regressor.

    Raises:
        ValueError: If kind is not supported.
    """
    if kind == "mlp":
        return MLPContender(random_state=random_state, **params)
    if kind == "linear":
        return LinearRegression(**params)
    if kind == "random_forest":
        settings = {"n_estimators": 100, "max_depth": 6, "random_state": random_state, "n_jobs": -1}
        settings.update(params)
        return RandomForestRegressor(**settings)
    if kind == "xgboost":
        settings = {
            "n_estimators": 100,
            "max_depth": 3,
            "learning_rate": 0.1,
            "subsample": 0.8,
            "random_state": random_state,
            "n_jobs": -1,
        }
        settings.update(params)
        return xgb.XGBRegressor(**settings)
    if kind == "lightgbm":
        settings = {
            "n_estimators": 100,
            "max_depth": 3,
            "learning_rate": 0.1,
            "min_child_samples": 5,
            "random_state": random_state,
            "n_jobs": -1,
            "verbose": -1,
        }
        settings.update(params)
        return lgb.LGBMRegressor(**settings)
    raise ValueError(f"Unknown contender kind: {kind}. Supported: {', '.join(CONTENDER_KINDS)}")
