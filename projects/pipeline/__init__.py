"""
Pipeline de cinco estágios com propagação de trace distribuído.

Ingress (HTTP) → Queue Relay (fila) → Compute (job) → Workflow A → Workflow B.
Cada estágio continua o trace recebido, anexa o seu resultado ao envelope e
repassa um carrier W3C novo para o próximo hop.
"""
